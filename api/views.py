from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.services.lookup import get_user_name_map
from api.serializers import (
    AssignRolesSerializer,
    ConfirmationDecisionSerializer,
    ConfirmationScanSerializer,
    DelegateSerializer,
    LiturgyMassTypeCreateSerializer,
    LiturgyMassTypeSerializer,
    LiturgyMassTypeUpdateSerializer,
    LiturgyRoleCreateSerializer,
    LiturgyRoleSerializer,
    LiturgyRoleUpdateSerializer,
    MassCreateSerializer,
    MassSerializer,
    MassSummarySerializer,
)
from core.services import attendance, liturgy, mass_actions, queries
from core.services.confirmation_tokens import build_confirmation_payload, parse_confirmation_payload
from core.services.guards import Actor, assert_cerimoniario_role


class ActorMixin:
    def get_actor(self):
        return Actor.from_user(self.request.user)

    def mass_response(self, mass, status_code=status.HTTP_200_OK):
        data = MassSerializer(mass, context={"actor": self.get_actor()}).data
        return Response({"ok": True, "mass": data}, status=status_code)


def _validated(serializer_class, data):
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def _list_params(request):
    params = request.query_params
    return {
        "status": params.get("status") or None,
        "date_from": params.get("from"),
        "date_to": params.get("to"),
        "page": params.get("page") or 1,
        "limit": params.get("limit"),
    }


def _page_response(result):
    return Response(
        {
            "items": MassSummarySerializer(result["items"], many=True).data,
            "page": result["page"],
            "limit": result["limit"],
        }
    )


class MassViewSet(ActorMixin, viewsets.ViewSet):
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = "[^/]+"

    def list(self, request):
        return _page_response(queries.list_masses(self.get_actor(), **_list_params(request)))

    def create(self, request):
        data = _validated(MassCreateSerializer, request.data)
        mass = mass_actions.create_mass(self.get_actor(), **data)
        response = self.mass_response(mass, status.HTTP_201_CREATED)
        response.data["massId"] = str(mass.pk)
        return response

    def retrieve(self, request, pk=None):
        return self.mass_response(queries.get_mass(pk))

    @action(detail=False, methods=["get"])
    def mine(self, request):
        return _page_response(queries.list_my_masses(self.get_actor(), **_list_params(request)))

    @action(detail=False, methods=["get"], url_path="next")
    def next_mass(self, request):
        mass = queries.next_mass(self.get_actor())
        return Response({"item": MassSummarySerializer(mass).data if mass else None})

    @action(detail=True, methods=["post"], url_path="open")
    def open_mass(self, request, pk=None):
        return self.mass_response(mass_actions.open_mass(pk, self.get_actor()))

    @action(detail=True, methods=["post"])
    def preparation(self, request, pk=None):
        return self.mass_response(mass_actions.move_mass_to_preparation(pk, self.get_actor()))

    @action(detail=True, methods=["post"])
    def finish(self, request, pk=None):
        return self.mass_response(mass_actions.finish_mass(pk, self.get_actor()))

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        return self.mass_response(mass_actions.cancel_mass(pk, self.get_actor()))

    @action(detail=True, methods=["post"])
    def delegate(self, request, pk=None):
        data = _validated(DelegateSerializer, request.data)
        return self.mass_response(mass_actions.delegate_mass(pk, self.get_actor(), data["new_chief_by"]))

    @action(detail=True, methods=["post"], url_path="assign-roles")
    def assign_roles(self, request, pk=None):
        data = _validated(AssignRolesSerializer, request.data)
        return self.mass_response(mass_actions.assign_roles(pk, self.get_actor(), data["assignments"]))

    @action(detail=True, methods=["post"], url_path="assign-roles/auto")
    def auto_assign_roles(self, request, pk=None):
        assignments = mass_actions.auto_assign_roles(pk, self.get_actor())
        names = get_user_name_map([entry.user_id for entry in assignments if entry.user_id is not None])
        return Response(
            {
                "ok": True,
                "assignments": [
                    {
                        "roleKey": entry.role_key,
                        "userId": entry.user_id,
                        "userName": names.get(entry.user_id) if entry.user_id is not None else None,
                    }
                    for entry in assignments
                ],
            }
        )

    @action(detail=True, methods=["post"])
    def join(self, request, pk=None):
        return self.mass_response(attendance.join_mass(pk, self.get_actor()))

    @action(detail=True, methods=["post"], url_path="confirm/request")
    def request_confirmation(self, request, pk=None):
        request_id = attendance.request_confirmation(pk, self.get_actor())
        return Response(
            {"ok": True, "requestId": request_id, "qrPayload": build_confirmation_payload(pk, request_id)}
        )

    @action(detail=True, methods=["post"], url_path="confirm/scan")
    def scan_confirmation(self, request, pk=None):
        assert_cerimoniario_role(self.get_actor())
        data = _validated(ConfirmationScanSerializer, request.data)
        request_id = parse_confirmation_payload(data["qr_payload"], pk)
        preview = attendance.preview_confirmation(pk, self.get_actor(), request_id)
        mass = preview.mass
        names = get_user_name_map([preview.pending_user_id, mass.chief_by_id, mass.created_by_id])
        return Response(
            {
                "ok": True,
                "requestId": preview.request_id,
                "acolito": {"userId": preview.pending_user_id, "name": names.get(preview.pending_user_id)},
                "mass": {
                    "id": str(mass.pk),
                    "scheduledAt": mass.scheduled_at,
                    "massType": mass.mass_type,
                    "chiefByName": names.get(mass.chief_by_id),
                    "createdByName": names.get(mass.created_by_id),
                },
            }
        )

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):
        data = _validated(ConfirmationDecisionSerializer, request.data)
        mass = attendance.decide_confirmation(pk, self.get_actor(), data["request_id"], data["decision"])
        return self.mass_response(mass)


def _active_only(request):
    return request.query_params.get("active") == "true"


class LiturgyRoleView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        roles = liturgy.list_roles(active_only=_active_only(request))
        return Response({"items": LiturgyRoleSerializer(roles, many=True).data})

    def post(self, request):
        assert_cerimoniario_role(Actor.from_user(request.user))
        data = _validated(LiturgyRoleCreateSerializer, request.data)
        role = liturgy.create_role(**data)
        return Response({"ok": True, "item": LiturgyRoleSerializer(role).data}, status=status.HTTP_201_CREATED)

    def patch(self, request):
        assert_cerimoniario_role(Actor.from_user(request.user))
        data = dict(_validated(LiturgyRoleUpdateSerializer, request.data))
        role = liturgy.update_role(data.pop("key"), **data)
        return Response({"ok": True, "item": LiturgyRoleSerializer(role).data})


class LiturgyMassTypeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        mass_types = liturgy.list_mass_types(active_only=_active_only(request))
        return Response({"items": LiturgyMassTypeSerializer(mass_types, many=True).data})

    def post(self, request):
        assert_cerimoniario_role(Actor.from_user(request.user))
        data = _validated(LiturgyMassTypeCreateSerializer, request.data)
        mass_type = liturgy.create_mass_type(**data)
        return Response(
            {"ok": True, "item": LiturgyMassTypeSerializer(mass_type).data}, status=status.HTTP_201_CREATED
        )

    def patch(self, request):
        assert_cerimoniario_role(Actor.from_user(request.user))
        data = dict(_validated(LiturgyMassTypeUpdateSerializer, request.data))
        mass_type = liturgy.update_mass_type(data.pop("key"), **data)
        return Response({"ok": True, "item": LiturgyMassTypeSerializer(mass_type).data})
