import uuid

from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models

from core.services.statuses import SCHEDULED, normalize_status


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class LiturgyRole(TimeStampedModel):
    key = models.CharField(max_length=40, unique=True)
    label = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    score = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(1000)])
    active = models.BooleanField(default=True)

    def __str__(self):
        return self.label


class LiturgyMassType(TimeStampedModel):
    key = models.CharField(max_length=40, unique=True)
    label = models.CharField(max_length=100)
    role_keys = models.JSONField(default=list, blank=True)
    fallback_role_key = models.CharField(max_length=40, null=True, blank=True)
    active = models.BooleanField(default=True)

    def __str__(self):
        return self.label


class Mass(TimeStampedModel):
    STATUS_CHOICES = [
        ("SCHEDULED", "Agendada"),
        ("OPEN", "Aberta"),
        ("PREPARATION", "Em preparacao"),
        ("FINISHED", "Finalizada"),
        ("CANCELED", "Cancelada"),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200, blank=True)
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default=SCHEDULED)
    scheduled_at = models.DateTimeField()
    mass_type = models.CharField(max_length=40)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="masses_created")
    chief_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="masses_chiefed")
    opened_at = models.DateTimeField(null=True, blank=True)
    preparation_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)

    class Meta:
        indexes = [
            models.Index(fields=["status", "scheduled_at"], name="mass_status_scheduled_idx"),
        ]

    def __str__(self):
        return f"{self.mass_type} - {self.scheduled_at}"

    @property
    def canonical_status(self):
        return normalize_status(self.status, default=self.status)


class MassJoin(models.Model):
    mass = models.ForeignKey(Mass, on_delete=models.CASCADE, related_name="joined_entries")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="mass_joins")
    joined_at = models.DateTimeField()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["mass", "user"], name="unique_join_per_mass_user"),
        ]


class MassConfirmation(models.Model):
    mass = models.ForeignKey(Mass, on_delete=models.CASCADE, related_name="confirmed_entries")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="mass_confirmations")
    confirmed_at = models.DateTimeField()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["mass", "user"], name="unique_confirmation_per_mass_user"),
        ]


class MassConfirmationRequest(models.Model):
    mass = models.ForeignKey(Mass, on_delete=models.CASCADE, related_name="pending_requests")
    request_id = models.UUIDField(unique=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="mass_confirmation_requests")
    requested_at = models.DateTimeField()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["mass", "user"], name="unique_pending_request_per_mass_user"),
        ]


class MassAssignment(models.Model):
    mass = models.ForeignKey(Mass, on_delete=models.CASCADE, related_name="assignments")
    position = models.PositiveSmallIntegerField()
    role_key = models.CharField(max_length=40)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="mass_assignments"
    )

    class Meta:
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(fields=["mass", "position"], name="unique_assignment_position_per_mass"),
        ]


class MassEvent(models.Model):
    MASS_CREATED = "MASS_CREATED"
    MASS_OPENED = "MASS_OPENED"
    MASS_MOVED_TO_PREPARATION = "MASS_MOVED_TO_PREPARATION"
    MASS_FINISHED = "MASS_FINISHED"
    MASS_CANCELED = "MASS_CANCELED"
    MASS_DELEGATED = "MASS_DELEGATED"
    MASS_ASSIGNMENTS_UPDATED = "MASS_ASSIGNMENTS_UPDATED"
    MASS_JOINED = "MASS_JOINED"
    MASS_CONFIRMATION_REQUESTED = "MASS_CONFIRMATION_REQUESTED"
    MASS_CONFIRMED = "MASS_CONFIRMED"
    MASS_CONFIRMATION_DENIED = "MASS_CONFIRMATION_DENIED"
    TYPE_CHOICES = [
        (MASS_CREATED, "Missa criada"),
        (MASS_OPENED, "Missa aberta"),
        (MASS_MOVED_TO_PREPARATION, "Missa em preparacao"),
        (MASS_FINISHED, "Missa finalizada"),
        (MASS_CANCELED, "Missa cancelada"),
        (MASS_DELEGATED, "Missa delegada"),
        (MASS_ASSIGNMENTS_UPDATED, "Funcoes atribuidas"),
        (MASS_JOINED, "Acolito entrou"),
        (MASS_CONFIRMATION_REQUESTED, "Confirmacao solicitada"),
        (MASS_CONFIRMED, "Presenca confirmada"),
        (MASS_CONFIRMATION_DENIED, "Confirmacao recusada"),
    ]
    mass = models.ForeignKey(Mass, on_delete=models.CASCADE, related_name="events")
    event_type = models.CharField(max_length=40, choices=TYPE_CHOICES)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="mass_events")
    at = models.DateTimeField()
    payload = models.JSONField(null=True, blank=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["mass", "id"], name="mass_event_log_idx"),
        ]
