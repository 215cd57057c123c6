# billing/admin.py

from django.contrib import admin

from billing.models import (
    Allocation,
    Invoice,
    InvoiceAuditLog,
    InvoiceSequence,
    NotificationEvent,
    Payment,
    PaymentMethod,
)


# ======================================================
# INVOICE ADMIN
# ======================================================


class AllocationInline(admin.TabularInline):
    model = Allocation
    extra = 0
    can_delete = False
    readonly_fields = ("payment", "amount_cents", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_number",
        "tenant",
        "member_id",
        "source",
        "status",
        "amount_cents",
        "currency",
        "due_at",
        "paid_at",
    )
    readonly_fields = (
        "tenant",
        "member_id",
        "invoice_number",
        "amount_cents",
        "currency",
        "source",
        "event_id",
        "dues_period_key",
        "issued_at",
        "paid_at",
        "reminder_sent_at",
        "reminder_count",
        "created_by",
        "created_at",
        "updated_at",
    )
    search_fields = ("invoice_number", "description")
    list_filter = ("source", "status", "tenant")
    inlines = [AllocationInline]


# ======================================================
# PAYMENTS (IMMUTABLE)
# ======================================================


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "reference",
        "invoice",
        "amount_cents",
        "currency",
        "status",
        "kind",
        "processed_at",
    )
    search_fields = ("reference", "invoice__invoice_number", "idempotency_key")
    list_filter = ("status", "kind")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ("member_id", "brand", "last4", "is_default", "status", "created_at")
    readonly_fields = ("token", "last4", "created_at", "updated_at")
    list_filter = ("status", "brand")


# ======================================================
# AUDIT / OUTBOX
# ======================================================


@admin.register(InvoiceAuditLog)
class InvoiceAuditLogAdmin(admin.ModelAdmin):
    list_display = ("invoice", "action", "actor_id", "amount_cents", "created_at")
    list_filter = ("action",)
    search_fields = ("invoice__invoice_number",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(NotificationEvent)
class NotificationEventAdmin(admin.ModelAdmin):
    list_display = ("kind", "invoice_id", "member_id", "status", "created_at")
    list_filter = ("kind", "status")


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ("tenant", "year", "type_code", "last_value")
