import re
import unicodedata

from core.services.errors import ValidationError

SCHEDULED = "SCHEDULED"
OPEN = "OPEN"
PREPARATION = "PREPARATION"
FINISHED = "FINISHED"
CANCELED = "CANCELED"

MASS_STATUSES = [SCHEDULED, OPEN, PREPARATION, FINISHED, CANCELED]

# Grafias ja gravadas na coluna status por versoes anteriores, por status canonico.
STATUS_SPELLINGS = {
    SCHEDULED: ["scheduled", "agendada", "agendado", "programada", "programado"],
    OPEN: ["open", "aberta", "aberto"],
    PREPARATION: ["preparation", "em preparação", "preparação", "preparando"],
    FINISHED: ["finished", "finalizada", "finalizado", "concluída", "concluído", "encerrada", "encerrado"],
    CANCELED: ["canceled", "cancelled", "cancelada", "cancelado"],
}


def _strip_accents(value):
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def _fold(value):
    return re.sub(r"[\s\-]+", "_", _strip_accents(value).strip()).upper()


def _stored_forms(spelling):
    forms = set()
    for base in (spelling, _strip_accents(spelling)):
        for joined in (base, base.replace(" ", "_")):
            forms.update({joined, joined.lower(), joined.upper(), joined.capitalize(), joined.title()})
    return forms


def _build_tables():
    stored, folded = {}, {}
    for status, spellings in STATUS_SPELLINGS.items():
        for spelling in spellings:
            for form in _stored_forms(spelling):
                stored[form] = status
            folded[_fold(spelling)] = status
    return stored, folded


# Valor gravado -> status canonico. Leitura (normalize_status) e guardas (stored_values)
# usam esta mesma tabela.
STORED_STATUS_VALUES, _FOLDED_STATUSES = _build_tables()


def normalize_status(value, default=None):
    """Status canonico de um valor gravado; `default` se a grafia nao for conhecida."""
    if value is None:
        return default
    return STORED_STATUS_VALUES.get(str(value), default)


def fold_status(value):
    """Leitura tolerante (caixa, acentos, espacos e hifens) para entrada externa."""
    if value is None:
        return None
    return _FOLDED_STATUSES.get(_fold(str(value)))


def parse_status(value):
    status = fold_status(value)
    if status is None:
        raise ValidationError("status invalido")
    return status


def stored_values(*statuses):
    """Todas as grafias que podem estar gravadas para os status informados."""
    return sorted(value for value, status in STORED_STATUS_VALUES.items() if status in statuses)
