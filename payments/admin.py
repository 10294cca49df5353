from django.contrib import admin
from .models import Order, WebhookEvent

@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_id", "provider", "provider_reference", "status", "gross_amount", "currency", "last_webhook_at", "updated_at")
    search_fields = ("order_id", "provider_reference", "transaction_id", "customer_email")
    list_filter = ("status", "provider", "currency", "created_at")
    readonly_fields = ("created_at", "updated_at", "last_webhook_at", "payment_metadata", "payment_instructions")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("reference", "provider", "provider_status", "internal_status", "outcome", "created_at", "replayed_at")
    search_fields = ("reference",)
    list_filter = ("outcome", "provider", "created_at")

    # the event log is append-only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
