from django.urls import path
from . import views, webhook
app_name = "payments"
urlpatterns = [
    # request targets are what the provider dashboards are configured with
    path("midtrans/notification", webhook.payment_notification, {"provider": "midtrans"}, name="midtrans_notification"),
    path("doku/notification", webhook.payment_notification, {"provider": "doku"}, name="doku_notification"),
    path("midtrans/check-status", views.check_status_view, {"provider": "midtrans"}, name="midtrans_check_status"),
    path("doku/check-status", views.check_status_view, {"provider": "doku"}, name="doku_check_status"),
]
