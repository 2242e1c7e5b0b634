# bloodcore/urls.py
from django.urls import path
from . import views

app_name = "bloodcore"

urlpatterns = [
    # inventory
    path("inventory/", views.inventory_dashboard, name="inventory"),
    path("inventory/<str:blood_type>/adjust/", views.inventory_adjust, name="inventory_adjust"),

    # donors / donations
    path("donors/", views.donor_register, name="donor_register"),
    path("donors/<str:donor_id>/donations/", views.donation_record, name="donation_record"),

    # requests
    path("requests/", views.request_create, name="request_create"),
    path("requests/<str:request_id>/fulfill/", views.request_fulfill, name="request_fulfill"),
    path("requests/<str:request_id>/cancel/", views.request_cancel, name="request_cancel"),
    path("requests/<str:request_id>/issue/", views.request_issue, name="request_issue"),
]
