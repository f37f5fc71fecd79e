from django.test import SimpleTestCase

from core.services.errors import ValidationError
from core.services.statuses import (
    CANCELED,
    FINISHED,
    OPEN,
    PREPARATION,
    SCHEDULED,
    STORED_STATUS_VALUES,
    fold_status,
    normalize_status,
    parse_status,
    stored_values,
)

LEGACY_SPELLINGS = {
    "Agendada": SCHEDULED,
    "AGENDADO": SCHEDULED,
    "Programada": SCHEDULED,
    "scheduled": SCHEDULED,
    "Aberta": OPEN,
    "Aberto": OPEN,
    "ABERTO": OPEN,
    "open": OPEN,
    "Em preparação": PREPARATION,
    "Em Preparacao": PREPARATION,
    "EM PREPARACAO": PREPARATION,
    "EM_PREPARACAO": PREPARATION,
    "Preparação": PREPARATION,
    "preparando": PREPARATION,
    "Finalizada": FINISHED,
    "Concluída": FINISHED,
    "Encerrada": FINISHED,
    "ENCERRADO": FINISHED,
    "cancelled": CANCELED,
    "Cancelada": CANCELED,
    "Cancelado": CANCELED,
    "CANCELLED": CANCELED,
}


class StatusNormalizationTests(SimpleTestCase):
    def test_canonical_values_pass_through(self):
        for status in (SCHEDULED, OPEN, PREPARATION, FINISHED, CANCELED):
            self.assertEqual(normalize_status(status), status)
            self.assertIn(status, stored_values(status))

    def test_each_legacy_spelling_reads_and_guards_alike(self):
        for spelling, status in LEGACY_SPELLINGS.items():
            with self.subTest(spelling=spelling):
                self.assertEqual(normalize_status(spelling), status)
                self.assertIn(spelling, stored_values(status))

    def test_every_known_value_is_guarded_under_its_status(self):
        for value, status in STORED_STATUS_VALUES.items():
            self.assertEqual(normalize_status(value), status)
            self.assertIn(value, stored_values(status))

    def test_stored_values_are_disjoint(self):
        self.assertFalse(set(stored_values(OPEN)) & set(stored_values(SCHEDULED, PREPARATION, FINISHED, CANCELED)))

    def test_unknown_value_uses_default(self):
        self.assertIsNone(normalize_status("arquivada"))
        self.assertEqual(normalize_status("arquivada", default="x"), "x")
        self.assertIsNone(normalize_status(None))

    def test_fold_status_is_lenient(self):
        self.assertEqual(fold_status(" CANCELADA "), CANCELED)
        self.assertEqual(fold_status("em-preparacao"), PREPARATION)
        self.assertEqual(fold_status("aBeRtO"), OPEN)
        self.assertIsNone(fold_status(None))

    def test_parse_status_rejects_unknown(self):
        self.assertEqual(parse_status("finalizada"), FINISHED)
        with self.assertRaises(ValidationError):
            parse_status("arquivada")
