from django.test import TestCase

from core.models import LiturgyMassType, LiturgyRole
from core.services.errors import NotFoundError, ValidationError
from core.services.liturgy import (
    create_mass_type,
    create_role,
    ensure_liturgy_defaults,
    get_mass_type_config,
    get_role_weight_map,
    list_mass_types,
    list_roles,
    normalize_role_keys,
    parse_score,
    update_mass_type,
    update_role,
)


class LiturgyDefaultsTests(TestCase):
    def test_defaults_are_seeded_once(self):
        self.assertEqual(ensure_liturgy_defaults(), 13)
        self.assertEqual(ensure_liturgy_defaults(), 0)
        self.assertEqual(LiturgyRole.objects.count(), 10)
        self.assertEqual(
            sorted(LiturgyMassType.objects.values_list("key", flat=True)), ["PALAVRA", "SIMPLES", "SOLENE"]
        )

    def test_missing_mass_type_is_restored_without_touching_roles(self):
        ensure_liturgy_defaults()
        LiturgyMassType.objects.filter(key="SOLENE").delete()
        LiturgyRole.objects.filter(key="SINO_2").delete()

        self.assertEqual(ensure_liturgy_defaults(), 1)
        self.assertFalse(LiturgyRole.objects.filter(key="SINO_2").exists())

    def test_simples_config(self):
        config = get_mass_type_config("simples")
        self.assertEqual(config.role_keys[0], "MISSAL")
        self.assertEqual(config.role_keys[-1], "NONE")
        self.assertEqual(config.fallback_role_key, "NONE")

    def test_inactive_or_unknown_type_has_empty_config(self):
        ensure_liturgy_defaults()
        LiturgyMassType.objects.filter(key="PALAVRA").update(active=False)

        self.assertEqual(get_mass_type_config("PALAVRA").role_keys, [])
        self.assertIsNone(get_mass_type_config("NADA").fallback_role_key)

    def test_stored_fallback_outside_role_keys_is_ignored(self):
        ensure_liturgy_defaults()
        LiturgyMassType.objects.filter(key="PALAVRA").update(fallback_role_key="TURIFERARIO")
        self.assertIsNone(get_mass_type_config("PALAVRA").fallback_role_key)

    def test_weight_map_skips_unknown_keys(self):
        self.assertEqual(get_role_weight_map(["missal", "NONE", "DESCONHECIDA"]), {"MISSAL": 90, "NONE": 0})

    def test_normalize_role_keys(self):
        self.assertEqual(normalize_role_keys([" tocha 1 ", "TOCHA_1", "", "missal"]), ["TOCHA_1", "MISSAL"])


class LiturgyRoleTests(TestCase):
    def test_create_role_allocates_numeric_keys(self):
        first = create_role(" Cruciferario ", 85, description="Leva a cruz")
        second = create_role("Naveteiro", 44.5)

        self.assertEqual(first.key, "1")
        self.assertEqual(first.label, "Cruciferario")
        self.assertEqual(second.key, "2")
        self.assertEqual(second.score, 45)
        self.assertEqual([role.key for role in list_roles()][:2], ["1", "2"])

    def test_score_validation(self):
        self.assertEqual(parse_score(0), 0)
        self.assertEqual(parse_score(1000), 1000)
        for value in (-1, 1001, "10", True, float("inf"), None):
            with self.assertRaises(ValidationError):
                parse_score(value)
        with self.assertRaises(ValidationError):
            create_role("  ", 10)

    def test_update_role(self):
        ensure_liturgy_defaults()
        role = update_role("missal", score=95, active=False)

        self.assertEqual(role.score, 95)
        self.assertFalse(role.active)
        self.assertNotIn("MISSAL", [item.key for item in list_roles(active_only=True)])

    def test_update_role_errors(self):
        ensure_liturgy_defaults()
        with self.assertRaises(ValidationError):
            update_role("MISSAL")
        with self.assertRaises(ValidationError):
            update_role("MISSAL", active="sim")
        with self.assertRaises(NotFoundError):
            update_role("NAO_EXISTE", label="X")


class LiturgyMassTypeTests(TestCase):
    def test_create_mass_type(self):
        mass_type = create_mass_type("Festiva", ["missal", "MISSAL", "tocha_1"], fallback_role_key="tocha_1")

        self.assertEqual(mass_type.key, "1")
        self.assertEqual(mass_type.role_keys, ["MISSAL", "TOCHA_1"])
        self.assertEqual(mass_type.fallback_role_key, "TOCHA_1")
        self.assertIn(mass_type, list_mass_types(active_only=True))

    def test_create_mass_type_validation(self):
        with self.assertRaisesMessage(ValidationError, "roleKeys nao pode ser vazio"):
            create_mass_type("Vazia", [])
        with self.assertRaises(ValidationError) as ctx:
            create_mass_type("Estranha", ["MISSAL", "VOO"])
        self.assertEqual(ctx.exception.details, {"roleKeys": ["VOO"]})
        with self.assertRaisesMessage(ValidationError, "fallbackRoleKey deve estar nas funcoes do tipo"):
            create_mass_type("Sem fallback", ["MISSAL"], fallback_role_key="AMBAO")
        with self.assertRaises(ValidationError):
            create_mass_type("", ["MISSAL"])

    def test_update_role_keys_resets_fallback(self):
        ensure_liturgy_defaults()
        mass_type = update_mass_type("PALAVRA", role_keys=["AMBAO", "CREDENCIA"])

        self.assertEqual(mass_type.role_keys, ["AMBAO", "CREDENCIA"])
        self.assertIsNone(mass_type.fallback_role_key)

    def test_update_fallback_against_current_roles(self):
        ensure_liturgy_defaults()
        mass_type = update_mass_type("PALAVRA", fallback_role_key="ambao", label="Liturgia da Palavra")
        self.assertEqual(mass_type.fallback_role_key, "AMBAO")
        self.assertEqual(mass_type.label, "Liturgia da Palavra")

        with self.assertRaises(ValidationError):
            update_mass_type("PALAVRA", fallback_role_key="MISSAL")
        with self.assertRaises(NotFoundError):
            update_mass_type("NAO_EXISTE", active=False)

    def test_updates_seed_defaults_on_empty_catalog(self):
        self.assertFalse(LiturgyMassType.objects.exists())

        mass_type = update_mass_type("PALAVRA", role_keys=["AMBAO"], fallback_role_key="AMBAO")
        self.assertEqual(mass_type.fallback_role_key, "AMBAO")

        LiturgyRole.objects.all().delete()
        LiturgyMassType.objects.all().delete()
        self.assertEqual(update_role("MISSAL", score=50).score, 50)
