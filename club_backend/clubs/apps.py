# clubs/apps.py

"""
CLUBS APP CONFIG

Tenants, members, membership types and events.
These are owned by the club-management side of the product; the billing
engine only looks them up (no CRUD API lives here).
"""

from django.apps import AppConfig


class ClubsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clubs"
    verbose_name = "Clubs"
