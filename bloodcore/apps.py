# bloodcore/apps.py
from django.apps import AppConfig


class BloodcoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bloodcore"
    verbose_name = "BloodCore"
