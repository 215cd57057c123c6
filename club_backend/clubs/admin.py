# clubs/admin.py

from django.contrib import admin

from clubs.models import Event, EventRegistration, Member, MembershipType, Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "created_at")
    search_fields = ("name", "slug")


@admin.register(MembershipType)
class MembershipTypeAdmin(admin.ModelAdmin):
    list_display = ("name", "tenant", "price_cents", "currency", "is_active")
    list_filter = ("tenant", "is_active")


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ("first_name", "last_name", "email", "tenant", "status", "membership_type")
    list_filter = ("tenant", "status")
    search_fields = ("first_name", "last_name", "email")


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("title", "tenant", "price_cents", "starts_at", "status")
    list_filter = ("tenant", "status")


@admin.register(EventRegistration)
class EventRegistrationAdmin(admin.ModelAdmin):
    list_display = ("event", "member", "status", "invoice")
    list_filter = ("status",)
    raw_id_fields = ("invoice",)
