import json
import uuid

from django.test import SimpleTestCase

from core.services.confirmation_tokens import build_confirmation_payload, parse_confirmation_payload
from core.services.errors import ConflictError, ValidationError


class ConfirmationTokenTests(SimpleTestCase):
    def setUp(self):
        self.mass_id = uuid.uuid4()
        self.request_id = str(uuid.uuid4())

    def test_payload_carries_mass_and_request(self):
        payload = json.loads(build_confirmation_payload(self.mass_id, self.request_id))
        self.assertEqual(payload, {"type": "MASS_CONFIRMATION", "massId": str(self.mass_id), "requestId": self.request_id})

    def test_parse_returns_request_id(self):
        raw = build_confirmation_payload(self.mass_id, self.request_id)
        self.assertEqual(parse_confirmation_payload(raw, str(self.mass_id)), self.request_id)

    def test_rejects_token_from_another_mass(self):
        raw = build_confirmation_payload(uuid.uuid4(), self.request_id)
        with self.assertRaises(ConflictError):
            parse_confirmation_payload(raw, self.mass_id)

    def test_rejects_malformed_tokens(self):
        for raw in ("", "not json", "[]", json.dumps({"type": "OTHER", "massId": "x", "requestId": "y"})):
            with self.assertRaises(ValidationError):
                parse_confirmation_payload(raw, self.mass_id)
        missing = json.dumps({"type": "MASS_CONFIRMATION", "massId": str(self.mass_id)})
        with self.assertRaises(ValidationError):
            parse_confirmation_payload(missing, self.mass_id)
