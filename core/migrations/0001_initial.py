import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="LiturgyRole",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("key", models.CharField(max_length=40, unique=True)),
                ("label", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True)),
                (
                    "score",
                    models.PositiveSmallIntegerField(
                        default=0, validators=[django.core.validators.MaxValueValidator(1000)]
                    ),
                ),
                ("active", models.BooleanField(default=True)),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="LiturgyMassType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("key", models.CharField(max_length=40, unique=True)),
                ("label", models.CharField(max_length=100)),
                ("role_keys", models.JSONField(blank=True, default=list)),
                ("fallback_role_key", models.CharField(blank=True, max_length=40, null=True)),
                ("active", models.BooleanField(default=True)),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Mass",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(blank=True, max_length=200)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("SCHEDULED", "Agendada"),
                            ("OPEN", "Aberta"),
                            ("PREPARATION", "Em preparacao"),
                            ("FINISHED", "Finalizada"),
                            ("CANCELED", "Cancelada"),
                        ],
                        default="SCHEDULED",
                        max_length=30,
                    ),
                ),
                ("scheduled_at", models.DateTimeField()),
                ("mass_type", models.CharField(max_length=40)),
                ("opened_at", models.DateTimeField(blank=True, null=True)),
                ("preparation_at", models.DateTimeField(blank=True, null=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=0)),
                (
                    "chief_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="masses_chiefed",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="masses_created",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["status", "scheduled_at"], name="mass_status_scheduled_idx")],
            },
        ),
        migrations.CreateModel(
            name="MassAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveSmallIntegerField()),
                ("role_key", models.CharField(max_length=40)),
                (
                    "mass",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="core.mass"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="mass_assignments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["position"],
                "constraints": [
                    models.UniqueConstraint(fields=("mass", "position"), name="unique_assignment_position_per_mass")
                ],
            },
        ),
        migrations.CreateModel(
            name="MassConfirmation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("confirmed_at", models.DateTimeField()),
                (
                    "mass",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="confirmed_entries", to="core.mass"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mass_confirmations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(fields=("mass", "user"), name="unique_confirmation_per_mass_user")
                ],
            },
        ),
        migrations.CreateModel(
            name="MassConfirmationRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("request_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("requested_at", models.DateTimeField()),
                (
                    "mass",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="pending_requests", to="core.mass"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mass_confirmation_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(fields=("mass", "user"), name="unique_pending_request_per_mass_user")
                ],
            },
        ),
        migrations.CreateModel(
            name="MassEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("MASS_CREATED", "Missa criada"),
                            ("MASS_OPENED", "Missa aberta"),
                            ("MASS_MOVED_TO_PREPARATION", "Missa em preparacao"),
                            ("MASS_FINISHED", "Missa finalizada"),
                            ("MASS_CANCELED", "Missa cancelada"),
                            ("MASS_DELEGATED", "Missa delegada"),
                            ("MASS_ASSIGNMENTS_UPDATED", "Funcoes atribuidas"),
                            ("MASS_JOINED", "Acolito entrou"),
                            ("MASS_CONFIRMATION_REQUESTED", "Confirmacao solicitada"),
                            ("MASS_CONFIRMED", "Presenca confirmada"),
                            ("MASS_CONFIRMATION_DENIED", "Confirmacao recusada"),
                        ],
                        max_length=40,
                    ),
                ),
                ("at", models.DateTimeField()),
                ("payload", models.JSONField(blank=True, null=True)),
                (
                    "actor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="mass_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "mass",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="events", to="core.mass"
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "indexes": [models.Index(fields=["mass", "id"], name="mass_event_log_idx")],
            },
        ),
        migrations.CreateModel(
            name="MassJoin",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("joined_at", models.DateTimeField()),
                (
                    "mass",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="joined_entries", to="core.mass"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mass_joins",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [models.UniqueConstraint(fields=("mass", "user"), name="unique_join_per_mass_user")],
            },
        ),
    ]
