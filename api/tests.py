import json
import uuid
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from core.models import MassEvent
from core.services.statuses import OPEN, PREPARATION
from core.tests.helpers import make_mass, make_user


class ApiTestCase(TestCase):
    def setUp(self):
        self.cerimoniario = make_user("cer", role=User.ROLE_CERIMONIARIO)
        self.acolyte = make_user("ac")
        self.client = APIClient()

    def as_user(self, user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def assertError(self, response, status_code, code):
        self.assertEqual(response.status_code, status_code, response.content)
        body = response.json()["error"]
        self.assertEqual(body["code"], code)
        self.assertTrue(body["message"])
        self.assertIn("requestId", body)
        return body


class ErrorEnvelopeTests(ApiTestCase):
    def test_unauthenticated(self):
        response = self.client.get("/api/masses/")
        body = self.assertError(response, 401, "UNAUTHENTICATED")
        self.assertEqual(body["requestId"], response["X-Request-ID"])

    def test_forbidden(self):
        self.assertError(self.as_user(self.acolyte).get("/api/masses/"), 403, "FORBIDDEN")

    def test_not_found_for_unknown_and_foreign_masses(self):
        other = make_user("cer2", role=User.ROLE_CERIMONIARIO)
        mass = make_mass(self.cerimoniario)
        client = self.as_user(other)

        self.assertError(client.get(f"/api/masses/{uuid.uuid4()}/"), 404, "NOT_FOUND")
        self.assertError(client.post(f"/api/masses/{mass.pk}/open/"), 404, "NOT_FOUND")

    def test_conflict(self):
        mass = make_mass(self.cerimoniario, status=OPEN)
        self.assertError(self.as_user(self.cerimoniario).post(f"/api/masses/{mass.pk}/open/"), 409, "CONFLICT")

    def test_validation(self):
        client = self.as_user(self.cerimoniario)
        body = self.assertError(client.post("/api/masses/", {"massType": "SIMPLES"}, format="json"), 400, "VALIDATION_ERROR")
        self.assertIn("scheduledAt", body["details"])

        response = client.post("/api/masses/", data="{nope", content_type="application/json")
        self.assertError(response, 400, "VALIDATION_ERROR")

    def test_incoming_request_id_is_echoed(self):
        response = self.as_user(self.acolyte).get("/api/masses/", HTTP_X_REQUEST_ID="trace-42")
        self.assertEqual(response.json()["error"]["requestId"], "trace-42")


class MassFlowTests(ApiTestCase):
    def test_full_mass_flow(self):
        admin = self.as_user(self.cerimoniario)
        acolyte = self.as_user(self.acolyte)
        scheduled_at = (timezone.now() + timedelta(days=3)).isoformat()

        created = admin.post("/api/masses/", {"scheduledAt": scheduled_at, "massType": "SIMPLES"}, format="json")
        self.assertEqual(created.status_code, 201)
        mass_id = created.json()["massId"]
        self.assertEqual(created.json()["mass"]["status"], "SCHEDULED")

        self.assertEqual(admin.post(f"/api/masses/{mass_id}/open/").json()["mass"]["status"], "OPEN")

        joined = acolyte.post(f"/api/masses/{mass_id}/join/").json()["mass"]
        self.assertEqual([entry["userId"] for entry in joined["attendance"]["joined"]], [self.acolyte.pk])
        self.assertNotIn("pending", joined["attendance"])

        requested = acolyte.post(f"/api/masses/{mass_id}/confirm/request/").json()
        payload = json.loads(requested["qrPayload"])
        self.assertEqual(payload, {"type": "MASS_CONFIRMATION", "massId": mass_id, "requestId": requested["requestId"]})

        scanned = admin.post(
            f"/api/masses/{mass_id}/confirm/scan/", {"qrPayload": requested["qrPayload"]}, format="json"
        ).json()
        self.assertEqual(scanned["acolito"], {"userId": self.acolyte.pk, "name": "Ac"})
        self.assertEqual(scanned["mass"]["createdByName"], "Cer")

        pending = admin.get(f"/api/masses/{mass_id}/").json()["mass"]["attendance"]["pending"]
        self.assertEqual(pending[0]["requestId"], requested["requestId"])

        confirmed = admin.post(
            f"/api/masses/{mass_id}/confirm/",
            {"requestId": requested["requestId"], "decision": "confirm"},
            format="json",
        ).json()["mass"]
        self.assertEqual([entry["userId"] for entry in confirmed["attendance"]["confirmed"]], [self.acolyte.pk])

        self.assertEqual(admin.post(f"/api/masses/{mass_id}/preparation/").json()["mass"]["status"], "PREPARATION")

        auto = admin.post(f"/api/masses/{mass_id}/assign-roles/auto/").json()["assignments"]
        self.assertEqual(auto[0], {"roleKey": "MISSAL", "userId": self.acolyte.pk, "userName": "Ac"})

        assigned = admin.post(
            f"/api/masses/{mass_id}/assign-roles/",
            {"assignments": [{"roleKey": entry["roleKey"], "userId": entry["userId"]} for entry in auto]},
            format="json",
        ).json()["mass"]
        self.assertEqual(assigned["assignments"][0], {"roleKey": "MISSAL", "userId": self.acolyte.pk})

        finished = admin.post(f"/api/masses/{mass_id}/finish/").json()["mass"]
        self.assertEqual(finished["status"], "FINISHED")
        self.assertEqual(
            [event["type"] for event in finished["events"]],
            [
                MassEvent.MASS_CREATED,
                MassEvent.MASS_OPENED,
                MassEvent.MASS_JOINED,
                MassEvent.MASS_CONFIRMATION_REQUESTED,
                MassEvent.MASS_CONFIRMED,
                MassEvent.MASS_MOVED_TO_PREPARATION,
                MassEvent.MASS_ASSIGNMENTS_UPDATED,
                MassEvent.MASS_FINISHED,
            ],
        )

        mine = acolyte.get("/api/masses/mine/").json()
        self.assertEqual([item["id"] for item in mine["items"]], [mass_id])

    def test_scan_rejects_payload_from_other_mass(self):
        mass = make_mass(self.cerimoniario, status=OPEN)
        foreign = json.dumps({"type": "MASS_CONFIRMATION", "massId": str(uuid.uuid4()), "requestId": str(uuid.uuid4())})
        response = self.as_user(self.cerimoniario).post(
            f"/api/masses/{mass.pk}/confirm/scan/", {"qrPayload": foreign}, format="json"
        )
        self.assertError(response, 409, "CONFLICT")

    def test_scan_is_for_cerimoniario(self):
        mass = make_mass(self.cerimoniario, status=OPEN)
        response = self.as_user(self.acolyte).post(f"/api/masses/{mass.pk}/confirm/scan/", {"qrPayload": "x"}, format="json")
        self.assertError(response, 403, "FORBIDDEN")

    def test_delegate_and_cancel(self):
        chief = make_user("chief", role=User.ROLE_CERIMONIARIO)
        mass = make_mass(self.cerimoniario)
        admin = self.as_user(self.cerimoniario)

        delegated = admin.post(f"/api/masses/{mass.pk}/delegate/", {"newChiefBy": chief.pk}, format="json")
        self.assertEqual(delegated.json()["mass"]["chiefBy"], chief.pk)

        canceled = self.as_user(chief).post(f"/api/masses/{mass.pk}/cancel/")
        self.assertEqual(canceled.json()["mass"]["status"], "CANCELED")

    def test_next_and_list(self):
        opened = make_mass(self.cerimoniario, status=OPEN, scheduled_at=timezone.now() + timedelta(days=2))
        make_mass(self.cerimoniario, status=PREPARATION, scheduled_at=timezone.now() + timedelta(days=1))

        item = self.as_user(self.acolyte).get("/api/masses/next/").json()["item"]
        self.assertEqual(item["id"], str(opened.pk))

        listed = self.as_user(self.cerimoniario).get("/api/masses/", {"status": "OPEN", "limit": 1}).json()
        self.assertEqual(listed["limit"], 1)
        self.assertEqual([entry["id"] for entry in listed["items"]], [str(opened.pk)])


class LiturgyApiTests(ApiTestCase):
    def test_list_roles_and_mass_types(self):
        client = self.as_user(self.acolyte)
        roles = client.get("/api/liturgy/roles/", {"active": "true"}).json()["items"]
        types = client.get("/api/liturgy/mass-types/").json()["items"]

        self.assertEqual(len(roles), 10)
        self.assertIn({"key": "MISSAL", "label": "Missal", "description": "Auxilia o celebrante com o missal.", "score": 90, "active": True}, roles)
        self.assertEqual([item["key"] for item in types], ["PALAVRA", "SIMPLES", "SOLENE"])
        self.assertEqual(types[0]["fallbackRoleKey"], "NONE")

    def test_create_and_update_role(self):
        client = self.as_user(self.cerimoniario)
        created = client.post("/api/liturgy/roles/", {"label": "Cruciferario", "score": 85}, format="json")
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["item"]["key"], "1")

        updated = client.patch("/api/liturgy/roles/", {"key": "1", "score": 70}, format="json")
        self.assertEqual(updated.json()["item"]["score"], 70)

        self.assertError(
            self.as_user(self.acolyte).post("/api/liturgy/roles/", {"label": "X", "score": 1}, format="json"),
            403,
            "FORBIDDEN",
        )

    def test_create_mass_type_with_unknown_role(self):
        client = self.as_user(self.cerimoniario)
        response = client.post("/api/liturgy/mass-types/", {"label": "Festa", "roleKeys": ["VOO"]}, format="json")
        body = self.assertError(response, 400, "VALIDATION_ERROR")
        self.assertEqual(body["details"], {"roleKeys": ["VOO"]})

    def test_update_mass_type(self):
        client = self.as_user(self.cerimoniario)
        response = client.patch(
            "/api/liturgy/mass-types/", {"key": "PALAVRA", "roleKeys": ["AMBAO"], "fallbackRoleKey": "AMBAO"}, format="json"
        )
        item = response.json()["item"]
        self.assertEqual(item["roleKeys"], ["AMBAO"])
        self.assertEqual(item["fallbackRoleKey"], "AMBAO")

    def test_liturgy_payloads_are_validated(self):
        client = self.as_user(self.cerimoniario)

        body = self.assertError(client.post("/api/liturgy/roles/", {"score": 10}, format="json"), 400, "VALIDATION_ERROR")
        self.assertIn("label", body["details"])

        response = client.patch("/api/liturgy/roles/", {"key": "MISSAL", "active": "talvez"}, format="json")
        self.assertIn("active", self.assertError(response, 400, "VALIDATION_ERROR")["details"])

        response = client.post("/api/liturgy/mass-types/", {"label": "Festa", "roleKeys": "MISSAL"}, format="json")
        self.assertIn("roleKeys", self.assertError(response, 400, "VALIDATION_ERROR")["details"])

        response = client.patch("/api/liturgy/mass-types/", {"label": "Sem chave"}, format="json")
        self.assertIn("key", self.assertError(response, 400, "VALIDATION_ERROR")["details"])
