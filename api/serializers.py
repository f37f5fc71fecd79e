from rest_framework import serializers

from core.models import (
    LiturgyMassType,
    LiturgyRole,
    Mass,
    MassAssignment,
    MassConfirmation,
    MassConfirmationRequest,
    MassEvent,
    MassJoin,
)
from core.services.attendance import DECISIONS
from core.services.guards import can_administer_mass


class MassJoinSerializer(serializers.ModelSerializer):
    userId = serializers.IntegerField(source="user_id")
    joinedAt = serializers.DateTimeField(source="joined_at")

    class Meta:
        model = MassJoin
        fields = ["userId", "joinedAt"]


class MassConfirmationSerializer(serializers.ModelSerializer):
    userId = serializers.IntegerField(source="user_id")
    confirmedAt = serializers.DateTimeField(source="confirmed_at")

    class Meta:
        model = MassConfirmation
        fields = ["userId", "confirmedAt"]


class MassConfirmationRequestSerializer(serializers.ModelSerializer):
    requestId = serializers.UUIDField(source="request_id")
    userId = serializers.IntegerField(source="user_id")
    requestedAt = serializers.DateTimeField(source="requested_at")

    class Meta:
        model = MassConfirmationRequest
        fields = ["requestId", "userId", "requestedAt"]


class MassAssignmentSerializer(serializers.ModelSerializer):
    roleKey = serializers.CharField(source="role_key")
    userId = serializers.IntegerField(source="user_id", allow_null=True)

    class Meta:
        model = MassAssignment
        fields = ["roleKey", "userId"]


class MassEventSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source="event_type")
    actorId = serializers.IntegerField(source="actor_id")

    class Meta:
        model = MassEvent
        fields = ["type", "actorId", "at", "payload"]


class MassSummarySerializer(serializers.ModelSerializer):
    status = serializers.CharField(source="canonical_status")
    massType = serializers.CharField(source="mass_type")
    scheduledAt = serializers.DateTimeField(source="scheduled_at")
    createdBy = serializers.IntegerField(source="created_by_id")
    chiefBy = serializers.IntegerField(source="chief_by_id")

    class Meta:
        model = Mass
        fields = ["id", "name", "status", "massType", "scheduledAt", "createdBy", "chiefBy"]


class MassSerializer(MassSummarySerializer):
    """Agregado completo. Pedidos pendentes so aparecem para quem administra a missa."""

    openedAt = serializers.DateTimeField(source="opened_at")
    preparationAt = serializers.DateTimeField(source="preparation_at")
    finishedAt = serializers.DateTimeField(source="finished_at")
    canceledAt = serializers.DateTimeField(source="canceled_at")
    attendance = serializers.SerializerMethodField()
    assignments = MassAssignmentSerializer(many=True)
    events = MassEventSerializer(many=True)
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    class Meta:
        model = Mass
        fields = MassSummarySerializer.Meta.fields + [
            "openedAt",
            "preparationAt",
            "finishedAt",
            "canceledAt",
            "attendance",
            "assignments",
            "events",
            "version",
            "createdAt",
            "updatedAt",
        ]

    def get_attendance(self, mass):
        attendance = {
            "joined": MassJoinSerializer(mass.joined_entries.all(), many=True).data,
            "confirmed": MassConfirmationSerializer(mass.confirmed_entries.all(), many=True).data,
        }
        actor = self.context.get("actor")
        if actor is not None and can_administer_mass(actor, mass):
            attendance["pending"] = MassConfirmationRequestSerializer(mass.pending_requests.all(), many=True).data
        return attendance


class AssignmentInputSerializer(serializers.Serializer):
    roleKey = serializers.CharField(source="role_key", max_length=40)
    userId = serializers.IntegerField(source="user_id", min_value=1, allow_null=True, required=False, default=None)


class AssignRolesSerializer(serializers.Serializer):
    assignments = AssignmentInputSerializer(many=True, allow_empty=True)


class MassCreateSerializer(serializers.Serializer):
    scheduledAt = serializers.DateTimeField(source="scheduled_at")
    massType = serializers.CharField(source="mass_type", max_length=40)
    chiefBy = serializers.IntegerField(source="chief_by", min_value=1, required=False, allow_null=True)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    assignments = AssignmentInputSerializer(many=True, required=False)


class DelegateSerializer(serializers.Serializer):
    newChiefBy = serializers.IntegerField(source="new_chief_by", min_value=1)


class ConfirmationDecisionSerializer(serializers.Serializer):
    requestId = serializers.CharField(source="request_id")
    decision = serializers.ChoiceField(choices=sorted(DECISIONS))


class ConfirmationScanSerializer(serializers.Serializer):
    qrPayload = serializers.CharField(source="qr_payload", trim_whitespace=False)


class LiturgyRoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = LiturgyRole
        fields = ["key", "label", "description", "score", "active"]


class LiturgyMassTypeSerializer(serializers.ModelSerializer):
    roleKeys = serializers.JSONField(source="role_keys")
    fallbackRoleKey = serializers.CharField(source="fallback_role_key", allow_null=True)

    class Meta:
        model = LiturgyMassType
        fields = ["key", "label", "roleKeys", "fallbackRoleKey", "active"]


class LiturgyRoleCreateSerializer(serializers.Serializer):
    label = serializers.CharField(max_length=100)
    score = serializers.FloatField()
    description = serializers.CharField(required=False, allow_blank=True, default="")
    active = serializers.BooleanField(required=False, default=True)


class LiturgyRoleUpdateSerializer(serializers.Serializer):
    key = serializers.CharField(max_length=40)
    label = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    score = serializers.FloatField(required=False)
    active = serializers.BooleanField(required=False)


class LiturgyMassTypeCreateSerializer(serializers.Serializer):
    label = serializers.CharField(max_length=100)
    roleKeys = serializers.ListField(source="role_keys", child=serializers.CharField(max_length=40))
    fallbackRoleKey = serializers.CharField(
        source="fallback_role_key", max_length=40, required=False, allow_null=True, allow_blank=True, default=None
    )
    active = serializers.BooleanField(required=False, default=True)


class LiturgyMassTypeUpdateSerializer(serializers.Serializer):
    key = serializers.CharField(max_length=40)
    label = serializers.CharField(max_length=100, required=False)
    roleKeys = serializers.ListField(source="role_keys", child=serializers.CharField(max_length=40), required=False)
    fallbackRoleKey = serializers.CharField(
        source="fallback_role_key", max_length=40, required=False, allow_null=True, allow_blank=True
    )
    active = serializers.BooleanField(required=False)
