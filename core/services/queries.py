from datetime import datetime

from django.conf import settings
from django.db.models import Prefetch
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.models import Mass, MassEvent
from core.services.concurrency import parse_mass_id, status_guard
from core.services.errors import ForbiddenError, MASS_NOT_FOUND, NotFoundError, ValidationError
from core.services.guards import administered_by
from core.services.statuses import OPEN, PREPARATION, SCHEDULED, parse_status

DEFAULT_PAGE_SIZE = 20
NEXT_MASS_SCAN_LIMIT = 50
ADMIN_NEXT_PRIORITY = [OPEN, PREPARATION, SCHEDULED]
ACOLITO_NEXT_PRIORITY = [OPEN, SCHEDULED]


def load_mass(mass_id):
    """Missa completa: presencas, funcoes e eventos em ordem de insercao."""
    mass_pk = parse_mass_id(mass_id)
    mass = (
        Mass.objects.filter(pk=mass_pk)
        .prefetch_related(
            "joined_entries",
            "confirmed_entries",
            "pending_requests",
            "assignments",
            Prefetch("events", queryset=MassEvent.objects.order_by("id")),
        )
        .first()
    )
    if mass is None:
        raise NotFoundError(MASS_NOT_FOUND)
    return mass


def get_mass(mass_id):
    return load_mass(mass_id)


def parse_datetime_param(value, field_name):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = parse_datetime(str(value).strip())
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValidationError(f"{field_name} invalido")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_current_timezone())
    return parsed


def parse_page(page, limit):
    try:
        page = 1 if page in (None, "") else int(page)
    except (TypeError, ValueError):
        raise ValidationError("page invalido")
    if page < 1:
        raise ValidationError("page invalido")
    try:
        limit = int(limit or DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError):
        raise ValidationError("limit invalido")
    return page, min(max(limit, 1), settings.MASS_LIST_MAX_LIMIT)


def _filtered(queryset, status=None, date_from=None, date_to=None):
    if status:
        queryset = queryset.filter(status_guard(parse_status(status)))
    date_from = parse_datetime_param(date_from, "from")
    date_to = parse_datetime_param(date_to, "to")
    if date_from:
        queryset = queryset.filter(scheduled_at__gte=date_from)
    if date_to:
        queryset = queryset.filter(scheduled_at__lte=date_to)
    return queryset


def _page(queryset, page, limit):
    page, limit = parse_page(page, limit)
    offset = (page - 1) * limit
    items = list(queryset.order_by("scheduled_at", "id")[offset : offset + limit])
    return {"items": items, "page": page, "limit": limit}


def list_masses(actor, status=None, date_from=None, date_to=None, page=1, limit=None):
    if not actor.is_cerimoniario:
        raise ForbiddenError("Acesso negado")
    queryset = _filtered(Mass.objects.all(), status, date_from, date_to)
    return _page(queryset, page, limit)


def list_my_masses(actor, status=None, date_from=None, date_to=None, page=1, limit=None):
    if actor.is_cerimoniario:
        queryset = Mass.objects.filter(administered_by(actor))
    else:
        queryset = Mass.objects.filter(confirmed_entries__user_id=actor.user_id)
    queryset = _filtered(queryset, status, date_from, date_to)
    return _page(queryset.distinct(), page, limit)


def next_mass(actor):
    priority = ADMIN_NEXT_PRIORITY if actor.is_cerimoniario else ACOLITO_NEXT_PRIORITY
    candidates = list(
        Mass.objects.filter(status_guard(*priority)).order_by("scheduled_at", "id")[:NEXT_MASS_SCAN_LIMIT]
    )
    for status in priority:
        for mass in candidates:
            if mass.canonical_status == status:
                return mass
    return None
