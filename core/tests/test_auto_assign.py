from datetime import timedelta

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from accounts.models import User
from core.models import MassAssignment, MassConfirmation
from core.services.auto_assign import (
    AssignmentEntry,
    ConfirmedParticipant,
    arrival_score,
    build_assignments,
    normalize_global_score,
    order_role_slots,
    rank_participants,
    recent_role_keys,
)
from core.services.errors import ConflictError, ForbiddenError, NotFoundError
from core.services.mass_actions import auto_assign_roles
from core.services.statuses import CANCELED, FINISHED, OPEN, PREPARATION
from core.tests.helpers import actor_for, make_mass, make_user

SIMPLES_ROLE_KEYS = ["MISSAL", "CREDENCIA", "AMBAO", "SINO_1", "ACOMPANHANTE_DO_LEITOR", "TOCHA_1", "TOCHA_2", "NONE"]
WEIGHTS = {
    "TURIFERARIO": 100,
    "MISSAL": 90,
    "CREDENCIA": 80,
    "AMBAO": 70,
    "SINO_1": 60,
    "ACOMPANHANTE_DO_LEITOR": 50,
    "SINO_2": 40,
    "TOCHA_1": 30,
    "TOCHA_2": 20,
    "NONE": 0,
}


def participants(*specs, start=None):
    start = start or timezone.now()
    return [
        ConfirmedParticipant(
            user_id=user_id,
            confirmed_at=start + timedelta(minutes=index),
            global_score=score,
            previous_function_weight=previous,
        )
        for index, (user_id, score, previous) in enumerate(specs)
    ]


class RankingTests(SimpleTestCase):
    def test_arrival_score_interpolates_and_rounds_half_up(self):
        self.assertEqual(arrival_score(0, 1), 100)
        self.assertEqual(arrival_score(0, 9), 100)
        self.assertEqual(arrival_score(1, 9), 88)
        self.assertEqual(arrival_score(3, 9), 63)
        self.assertEqual(arrival_score(8, 9), 0)

    def test_invalid_global_scores_fall_back_to_default(self):
        self.assertEqual(normalize_global_score(70), 70)
        for value in (None, "80", True, 150, -1, float("nan")):
            self.assertEqual(normalize_global_score(value), 50)

    def test_role_slots_sorted_by_weight_then_key_without_none(self):
        self.assertEqual(
            order_role_slots(["TOCHA_2", "NONE", "MISSAL", "ZETA", "ALFA"], WEIGHTS),
            ["MISSAL", "TOCHA_2", "ALFA", "ZETA"],
        )

    def test_simples_with_nine_confirmed_follows_arrival_and_overflows(self):
        users = list(range(1, 10))
        result = build_assignments(SIMPLES_ROLE_KEYS, WEIGHTS, participants(*[(u, 50, 0) for u in users]), "NONE")

        self.assertEqual(
            result,
            [
                AssignmentEntry("MISSAL", 1),
                AssignmentEntry("CREDENCIA", 2),
                AssignmentEntry("AMBAO", 3),
                AssignmentEntry("SINO_1", 4),
                AssignmentEntry("ACOMPANHANTE_DO_LEITOR", 5),
                AssignmentEntry("TOCHA_1", 6),
                AssignmentEntry("TOCHA_2", 7),
                AssignmentEntry("NONE", 8),
                AssignmentEntry("NONE", 9),
            ],
        )

    def test_overflow_uses_configured_fallback_or_none(self):
        people = participants((1, 50, 0), (2, 50, 0), (3, 50, 0))
        with_fallback = build_assignments(["MISSAL"], WEIGHTS, people, "TOCHA_1")
        without_fallback = build_assignments(["MISSAL"], WEIGHTS, people, None)

        self.assertEqual([entry.role_key for entry in with_fallback], ["MISSAL", "TOCHA_1", "TOCHA_1"])
        self.assertEqual([entry.role_key for entry in without_fallback], ["MISSAL", "NONE", "NONE"])

    def test_vacant_slots_when_fewer_confirmed(self):
        result = build_assignments(["MISSAL", "AMBAO", "TOCHA_1"], WEIGHTS, participants((7, 50, 0)), None)
        self.assertEqual(result, [AssignmentEntry("MISSAL", 7), AssignmentEntry("AMBAO"), AssignmentEntry("TOCHA_1")])

    def test_rotation_favors_who_held_lighter_roles(self):
        # 1: 100 + 0 = 100; 2: 50 + 60 = 110; 3: 0 + 60 = 60
        result = build_assignments(
            ["MISSAL", "CREDENCIA"], WEIGHTS, participants((1, 50, 100), (2, 50, 0), (3, 50, 0)), None
        )
        self.assertEqual(result, [AssignmentEntry("MISSAL", 2), AssignmentEntry("CREDENCIA", 1), AssignmentEntry("NONE", 3)])

    def test_profile_bonus_can_overtake_earlier_arrival(self):
        people = participants((1, 40, 0), (2, 100, 0), (3, 50, 0), (4, 50, 0), (5, 50, 0), (6, 50, 0))
        ranked = rank_participants(people)

        self.assertEqual(ranked[0].user_id, 2)
        self.assertEqual(ranked[0].priority_score, 80 + 60 + 20)
        self.assertEqual(ranked[1].user_id, 1)
        self.assertEqual(ranked[1].profile_bonus, -4)

    def test_equal_priority_prefers_earlier_arrival(self):
        people = participants((1, 50, 0), (2, 100, 0), (3, 50, 0), (4, 50, 0), (5, 50, 0), (6, 50, 0))
        ranked = rank_participants(people)

        self.assertEqual(ranked[0].priority_score, ranked[1].priority_score)
        self.assertEqual([ranked[0].user_id, ranked[1].user_id], [1, 2])

    def test_duplicate_confirmations_keep_first(self):
        start = timezone.now()
        people = [
            ConfirmedParticipant(user_id=1, confirmed_at=start + timedelta(minutes=5)),
            ConfirmedParticipant(user_id=2, confirmed_at=start + timedelta(minutes=1)),
            ConfirmedParticipant(user_id=1, confirmed_at=start),
        ]
        ranked = rank_participants(people)
        self.assertEqual([item.user_id for item in ranked], [2, 1])

    def test_same_inputs_same_output(self):
        people = participants((3, 70, 20), (1, 30, 90), (2, 50, 0), (4, 90, 60))
        first = build_assignments(SIMPLES_ROLE_KEYS, WEIGHTS, people, "NONE")
        second = build_assignments(SIMPLES_ROLE_KEYS, WEIGHTS, list(people), "NONE")
        self.assertEqual(first, second)


class AutoAssignServiceTests(TestCase):
    def setUp(self):
        self.cerimoniario = make_user("cer", role=User.ROLE_CERIMONIARIO)
        self.actor = actor_for(self.cerimoniario)
        self.now = timezone.now()
        self.mass = make_mass(self.cerimoniario, status=PREPARATION, scheduled_at=self.now + timedelta(days=7))

    def _confirm(self, mass, *users):
        for index, user in enumerate(users):
            MassConfirmation.objects.create(mass=mass, user=user, confirmed_at=self.now + timedelta(minutes=index))

    def _finished_mass(self, days_ago, assignments, status=FINISHED):
        mass = make_mass(self.cerimoniario, status=status, scheduled_at=self.now - timedelta(days=days_ago))
        for position, (role_key, user) in enumerate(assignments):
            MassAssignment.objects.create(mass=mass, position=position, role_key=role_key, user=user)
        return mass

    def test_history_from_previous_finished_mass_drives_rotation(self):
        first, second, third = make_user("a1"), make_user("a2"), make_user("a3")
        self._finished_mass(3, [("MISSAL", first)])
        self._confirm(self.mass, first, second, third)

        result = auto_assign_roles(self.mass.pk, self.actor)

        self.assertEqual(result[:3], [
            AssignmentEntry("MISSAL", second.pk),
            AssignmentEntry("CREDENCIA", first.pk),
            AssignmentEntry("AMBAO", third.pk),
        ])
        self.assertEqual([entry.user_id for entry in result[3:]], [None, None, None, None])
        self.assertFalse(MassAssignment.objects.filter(mass=self.mass).exists())

    def test_profile_last_role_key_used_without_history(self):
        first = make_user("a1", last_role_key="TURIFERARIO")
        second, third = make_user("a2"), make_user("a3")
        self._confirm(self.mass, first, second, third)

        result = auto_assign_roles(self.mass.pk, self.actor)

        self.assertEqual(result[0], AssignmentEntry("MISSAL", second.pk))
        self.assertEqual(result[1], AssignmentEntry("CREDENCIA", first.pk))

    def test_only_most_recent_finished_mass_counts(self):
        veteran, other = make_user("a1"), make_user("a2")
        self._finished_mass(10, [("TURIFERARIO", veteran)])
        self._finished_mass(2, [("TOCHA_2", veteran), ("SINO_1", other)])
        self._finished_mass(1, [("CREDENCIA", other)], status=CANCELED)

        history = recent_role_keys(self.mass, [veteran.pk, other.pk])

        self.assertEqual(history, {veteran.pk: ["TOCHA_2"], other.pk: ["SINO_1"]})

    def test_masses_after_current_are_ignored(self):
        user = make_user("a1")
        later = make_mass(self.cerimoniario, status=FINISHED, scheduled_at=self.now + timedelta(days=30))
        MassAssignment.objects.create(mass=later, position=0, role_key="MISSAL", user=user)

        self.assertEqual(recent_role_keys(self.mass, [user.pk]), {})

    def test_requires_preparation_and_administrator(self):
        open_mass = make_mass(self.cerimoniario, status=OPEN)
        with self.assertRaises(ConflictError):
            auto_assign_roles(open_mass.pk, self.actor)

        outsider = make_user("cer2", role=User.ROLE_CERIMONIARIO)
        with self.assertRaises(NotFoundError):
            auto_assign_roles(self.mass.pk, actor_for(outsider))

        with self.assertRaises(ForbiddenError):
            auto_assign_roles(self.mass.pk, actor_for(make_user("a9")))
