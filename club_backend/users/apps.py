# users/apps.py

"""
USERS APP CONFIG

Custom user = the authenticated principal handed to the billing engine:
tenant, optional member link and a role from the closed Role enum.
"""

from django.apps import AppConfig


class UsersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "users"
    verbose_name = "Users"
