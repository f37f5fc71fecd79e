import uuid
from unittest import mock

from django.test import TestCase

from accounts.models import User
from core.models import MassConfirmation, MassConfirmationRequest, MassEvent, MassJoin
from core.services.attendance import (
    ALREADY_CONFIRMED,
    CONFIRM,
    DENY,
    JOIN_REQUIRED,
    REQUEST_NOT_FOUND,
    decide_confirmation,
    join_mass,
    preview_confirmation,
    request_confirmation,
)
from core.services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from core.services.statuses import OPEN, PREPARATION, SCHEDULED
from core.tests.helpers import actor_for, make_mass, make_user


class AttendanceTestCase(TestCase):
    def setUp(self):
        self.cerimoniario = make_user("cer", role=User.ROLE_CERIMONIARIO)
        self.admin = actor_for(self.cerimoniario)
        self.acolyte = make_user("ac")
        self.actor = actor_for(self.acolyte)
        self.mass = make_mass(self.cerimoniario, status=OPEN)

    def pending_request_id(self):
        join_mass(self.mass.pk, self.actor)
        return request_confirmation(self.mass.pk, self.actor)


class JoinTests(AttendanceTestCase):
    def test_join_is_idempotent(self):
        first = join_mass(self.mass.pk, self.actor)
        second = join_mass(self.mass.pk, self.actor)

        self.assertEqual([entry.user_id for entry in first.joined_entries.all()], [self.acolyte.pk])
        self.assertEqual(MassJoin.objects.filter(mass=self.mass).count(), 1)
        self.assertEqual(second.version, first.version)
        self.assertEqual(MassEvent.objects.filter(mass=self.mass, event_type=MassEvent.MASS_JOINED).count(), 1)

    def test_join_requires_open_mass(self):
        scheduled = make_mass(self.cerimoniario, status=SCHEDULED)
        with self.assertRaisesMessage(ConflictError, "Acao nao permitida no status SCHEDULED"):
            join_mass(scheduled.pk, self.actor)

    def test_join_is_for_acolytes_only(self):
        with self.assertRaises(ForbiddenError):
            join_mass(self.mass.pk, self.admin)
        with self.assertRaises(NotFoundError):
            join_mass(uuid.uuid4(), self.actor)

    def test_lost_insert_race_still_returns_mass(self):
        # The guard wins but a concurrent request already stored the join row.
        MassJoin.objects.create(mass=self.mass, user=self.acolyte, joined_at=self.mass.scheduled_at)
        with mock.patch("core.services.attendance.guarded_update", return_value=True):
            mass = join_mass(self.mass.pk, self.actor)

        self.assertEqual(MassJoin.objects.filter(mass=self.mass).count(), 1)
        self.assertFalse(MassEvent.objects.filter(mass=self.mass).exists())
        self.assertEqual(mass.version, 0)


class RequestConfirmationTests(AttendanceTestCase):
    def test_request_requires_join(self):
        with self.assertRaisesMessage(ConflictError, JOIN_REQUIRED):
            request_confirmation(self.mass.pk, self.actor)

    def test_repeated_request_returns_same_id(self):
        request_id = self.pending_request_id()
        again = request_confirmation(self.mass.pk, self.actor)

        self.assertEqual(request_id, again)
        self.assertEqual(MassConfirmationRequest.objects.filter(mass=self.mass).count(), 1)
        event = MassEvent.objects.get(mass=self.mass, event_type=MassEvent.MASS_CONFIRMATION_REQUESTED)
        self.assertEqual(event.payload, {"requestId": request_id})

    def test_confirmed_acolyte_cannot_request_again(self):
        request_id = self.pending_request_id()
        decide_confirmation(self.mass.pk, self.admin, request_id, CONFIRM)

        with self.assertRaisesMessage(ConflictError, ALREADY_CONFIRMED):
            request_confirmation(self.mass.pk, self.actor)

    def test_request_outside_open_status(self):
        join_mass(self.mass.pk, self.actor)
        self.mass.status = PREPARATION
        self.mass.save(update_fields=["status"])

        with self.assertRaises(ConflictError):
            request_confirmation(self.mass.pk, self.actor)


class PreviewTests(AttendanceTestCase):
    def test_preview_returns_pending_user(self):
        request_id = self.pending_request_id()

        preview = preview_confirmation(self.mass.pk, self.admin, request_id)

        self.assertEqual(preview.request_id, request_id)
        self.assertEqual(preview.pending_user_id, self.acolyte.pk)
        self.assertEqual(preview.mass.pk, self.mass.pk)
        self.assertTrue(MassConfirmationRequest.objects.filter(mass=self.mass).exists())

    def test_preview_unknown_request(self):
        join_mass(self.mass.pk, self.actor)
        for request_id in (str(uuid.uuid4()), "nao-e-uuid"):
            with self.assertRaisesMessage(NotFoundError, REQUEST_NOT_FOUND):
                preview_confirmation(self.mass.pk, self.admin, request_id)

    def test_preview_requires_administrator(self):
        request_id = self.pending_request_id()
        outsider = actor_for(make_user("cer2", role=User.ROLE_CERIMONIARIO))
        with self.assertRaises(NotFoundError):
            preview_confirmation(self.mass.pk, outsider, request_id)
        with self.assertRaises(ForbiddenError):
            preview_confirmation(self.mass.pk, self.actor, request_id)


class DecideConfirmationTests(AttendanceTestCase):
    def test_confirm_moves_request_to_confirmed(self):
        request_id = self.pending_request_id()

        mass = decide_confirmation(self.mass.pk, self.admin, request_id, CONFIRM)

        self.assertEqual([entry.user_id for entry in mass.confirmed_entries.all()], [self.acolyte.pk])
        self.assertEqual(list(mass.pending_requests.all()), [])
        event = mass.events.last()
        self.assertEqual(event.event_type, MassEvent.MASS_CONFIRMED)
        self.assertEqual(event.payload, {"requestId": request_id, "confirmedUserId": self.acolyte.pk})

    def test_request_is_consumed_exactly_once(self):
        request_id = self.pending_request_id()
        decide_confirmation(self.mass.pk, self.admin, request_id, CONFIRM)

        with self.assertRaisesMessage(NotFoundError, REQUEST_NOT_FOUND):
            decide_confirmation(self.mass.pk, self.admin, request_id, CONFIRM)
        self.assertEqual(MassConfirmation.objects.filter(mass=self.mass).count(), 1)
        self.assertEqual(MassEvent.objects.filter(mass=self.mass, event_type=MassEvent.MASS_CONFIRMED).count(), 1)

    def test_deny_discards_request_and_allows_new_one(self):
        request_id = self.pending_request_id()

        mass = decide_confirmation(self.mass.pk, self.admin, request_id, DENY)

        self.assertEqual(list(mass.confirmed_entries.all()), [])
        self.assertEqual(list(mass.pending_requests.all()), [])
        self.assertEqual(mass.events.last().event_type, MassEvent.MASS_CONFIRMATION_DENIED)
        self.assertNotEqual(request_confirmation(self.mass.pk, self.actor), request_id)

    def test_invalid_decision(self):
        request_id = self.pending_request_id()
        with self.assertRaises(ValidationError):
            decide_confirmation(self.mass.pk, self.admin, request_id, "maybe")

    def test_decision_requires_administrator_and_open_status(self):
        request_id = self.pending_request_id()
        outsider = actor_for(make_user("cer2", role=User.ROLE_CERIMONIARIO))
        with self.assertRaises(NotFoundError):
            decide_confirmation(self.mass.pk, outsider, request_id, CONFIRM)

        self.mass.status = PREPARATION
        self.mass.save(update_fields=["status"])
        with self.assertRaises(ConflictError):
            decide_confirmation(self.mass.pk, self.admin, request_id, CONFIRM)
        self.assertTrue(MassConfirmationRequest.objects.filter(request_id=request_id).exists())

    def test_chief_can_decide(self):
        chief = make_user("chief", role=User.ROLE_CERIMONIARIO)
        self.mass.chief_by = chief
        self.mass.save(update_fields=["chief_by"])
        request_id = self.pending_request_id()

        mass = decide_confirmation(self.mass.pk, actor_for(chief), request_id, CONFIRM)

        self.assertEqual(mass.events.last().actor_id, chief.pk)
