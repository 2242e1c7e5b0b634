from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("bloodcore", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="bloodrequest",
            name="issued_at",
            field=models.DateTimeField(blank=True, null=True, verbose_name="Issued at"),
        ),
    ]
