"""
======================================================
PATH: clubs/migrations/0001_initial.py
======================================================
MIGRATION: CLUB DIRECTORY TABLES

Creates Tenant, MembershipType, Member, Event and EventRegistration.
The registration -> invoice link is added in 0002 once billing exists.
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=200)),
                (
                    "slug",
                    models.SlugField(
                        max_length=64,
                        unique=True,
                        help_text="Short code used as the invoice number prefix.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="MembershipType",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=120)),
                (
                    "price_cents",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Recurring dues amount per period, in cents.",
                    ),
                ),
                ("currency", models.CharField(max_length=3, default="PHP")),
                ("is_active", models.BooleanField(default=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        to="clubs.tenant",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="membership_types",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "indexes": [
                    models.Index(
                        fields=["tenant", "is_active"],
                        name="clubs_mtype_tenant_active_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Member",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("first_name", models.CharField(max_length=100, blank=True)),
                ("last_name", models.CharField(max_length=100, blank=True)),
                ("email", models.EmailField(max_length=254, blank=True)),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("ACTIVE", "Active"),
                            ("PENDING", "Pending"),
                            ("INACTIVE", "Inactive"),
                        ],
                        default="ACTIVE",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        to="clubs.tenant",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="members",
                    ),
                ),
                (
                    "membership_type",
                    models.ForeignKey(
                        to="clubs.membershiptype",
                        on_delete=django.db.models.deletion.SET_NULL,
                        null=True,
                        blank=True,
                        related_name="members",
                    ),
                ),
            ],
            options={
                "ordering": ["last_name", "first_name"],
                "indexes": [
                    models.Index(
                        fields=["tenant", "status"],
                        name="clubs_member_tenant_status_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Event",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("title", models.CharField(max_length=200)),
                (
                    "price_cents",
                    models.IntegerField(
                        default=0,
                        help_text="Ticket price in cents. Zero means a free event.",
                    ),
                ),
                ("currency", models.CharField(max_length=3, default="PHP")),
                ("starts_at", models.DateTimeField()),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("DRAFT", "Draft"),
                            ("PUBLISHED", "Published"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="PUBLISHED",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        to="clubs.tenant",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                    ),
                ),
            ],
            options={"ordering": ["-starts_at"]},
        ),
        migrations.CreateModel(
            name="EventRegistration",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("PENDING", "Pending"),
                            ("CONFIRMED", "Confirmed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="CONFIRMED",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "tenant",
                    models.ForeignKey(
                        to="clubs.tenant",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="event_registrations",
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        to="clubs.event",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                    ),
                ),
                (
                    "member",
                    models.ForeignKey(
                        to="clubs.member",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="event_registrations",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("event", "member"),
                        name="uniq_event_registration_member",
                    )
                ],
            },
        ),
    ]
