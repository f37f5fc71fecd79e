import structlog
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.services.lookup import active_user_ids_with_role, is_active_user_with_role, parse_user_id
from core.models import Mass, MassAssignment, MassConfirmation, MassConfirmationRequest, MassEvent, MassJoin
from core.services.auto_assign import AssignmentEntry, compute_auto_assignments
from core.services.concurrency import admin_guard, guarded_update, parse_mass_id, raise_lost_update, status_guard
from core.services.errors import MASS_NOT_FOUND, NotFoundError, ValidationError
from core.services.events import append_event
from core.services.guards import (
    ACOLITO,
    CERIMONIARIO,
    assert_can_administer,
    assert_cerimoniario_role,
    assert_status,
)
from core.services.liturgy import get_mass_type_config, is_valid_active_mass_type, normalize_key
from core.services.queries import load_mass, parse_datetime_param
from core.services.statuses import CANCELED, FINISHED, OPEN, PREPARATION, SCHEDULED

logger = structlog.get_logger(__name__)

DELEGABLE_STATUSES = [SCHEDULED, OPEN, PREPARATION]
CANCELABLE_STATUSES = [SCHEDULED, OPEN]


def _entry_fields(item):
    if isinstance(item, dict):
        return item.get("role_key"), item.get("user_id")
    return getattr(item, "role_key", None), getattr(item, "user_id", None)


def normalize_assignments(raw_assignments):
    """Valida a lista de funcoes enviada pelo cerimoniario.

    Cada item precisa de role_key; user_id pode ser None (vaga) ou um ACOLITO ativo.
    """
    if not isinstance(raw_assignments, (list, tuple)):
        raise ValidationError("assignments deve ser uma lista")
    entries = []
    for item in raw_assignments:
        role_key, user_id = _entry_fields(item)
        if not isinstance(role_key, str) or not normalize_key(role_key):
            raise ValidationError("roleKey invalido em assignments")
        if user_id is None:
            entries.append(AssignmentEntry(role_key=normalize_key(role_key)))
            continue
        parsed = parse_user_id(user_id)
        if parsed is None:
            raise ValidationError("userId invalido em assignments")
        entries.append(AssignmentEntry(role_key=normalize_key(role_key), user_id=parsed))

    user_ids = {entry.user_id for entry in entries if entry.user_id is not None}
    if user_ids and active_user_ids_with_role(user_ids, ACOLITO) != user_ids:
        raise ValidationError("Todos os userId em assignments devem ser ACOLITO ativo")
    return entries


def _replace_assignments(mass_pk, entries):
    MassAssignment.objects.filter(mass_id=mass_pk).delete()
    MassAssignment.objects.bulk_create(
        [
            MassAssignment(mass_id=mass_pk, position=position, role_key=entry.role_key, user_id=entry.user_id)
            for position, entry in enumerate(entries)
        ]
    )


def create_mass(actor, scheduled_at, mass_type, chief_by=None, name="", assignments=None):
    assert_cerimoniario_role(actor)
    scheduled_at = parse_datetime_param(scheduled_at, "scheduledAt")
    if scheduled_at is None:
        raise ValidationError("scheduledAt invalido")
    if not isinstance(mass_type, str) or not is_valid_active_mass_type(mass_type):
        raise ValidationError("massType invalido")

    chief_id = actor.user_id
    if chief_by is not None:
        chief_id = parse_user_id(chief_by)
        if chief_id is None:
            raise ValidationError("chiefBy invalido")
        if not is_active_user_with_role(chief_id, CERIMONIARIO):
            raise ValidationError("chiefBy deve ser um CERIMONIARIO ativo")
    entries = normalize_assignments(assignments) if assignments else []

    now = timezone.now()
    with transaction.atomic():
        mass = Mass.objects.create(
            name=(name or "").strip(),
            status=SCHEDULED,
            scheduled_at=scheduled_at,
            mass_type=normalize_key(mass_type),
            created_by_id=actor.user_id,
            chief_by_id=chief_id,
        )
        _replace_assignments(mass.pk, entries)
        append_event(mass.pk, MassEvent.MASS_CREATED, actor, at=now)
    logger.info("mass_created", mass_id=str(mass.pk), actor_id=actor.user_id, mass_type=mass.mass_type)
    return load_mass(mass.pk)


def _transition(mass_id, actor, allowed, target, event_type, conflict_message, stamp_field, side_effect=None):
    """Transicao de status administrativa em uma unica atualizacao condicional.

    `side_effect(mass_pk)` roda na mesma transacao depois que a guarda venceu e
    devolve o payload do evento.
    """
    assert_cerimoniario_role(actor)
    mass_pk = parse_mass_id(mass_id)
    now = timezone.now()
    with transaction.atomic():
        changes = {"status": target, stamp_field: now}
        if not guarded_update(mass_pk, admin_guard(actor, *allowed), **changes):
            raise_lost_update(mass_pk, actor, allowed, conflict_message)
        payload = side_effect(mass_pk) if side_effect else None
        append_event(mass_pk, event_type, actor, at=now, payload=payload)
    logger.info(event_type.lower(), mass_id=str(mass_pk), actor_id=actor.user_id, status=target)
    return load_mass(mass_pk)


def open_mass(mass_id, actor):
    return _transition(
        mass_id,
        actor,
        [SCHEDULED],
        OPEN,
        MassEvent.MASS_OPENED,
        "A missa nao pode ser aberta por concorrencia",
        "opened_at",
    )


def _drop_unconfirmed_attendance(mass_pk):
    confirmed_ids = MassConfirmation.objects.filter(mass_id=mass_pk).values("user_id")
    removed_joined, _ = MassJoin.objects.filter(mass_id=mass_pk).exclude(user_id__in=confirmed_ids).delete()
    removed_pending, _ = MassConfirmationRequest.objects.filter(mass_id=mass_pk).delete()
    return {"removedJoinedCount": removed_joined, "removedPendingCount": removed_pending}


def move_mass_to_preparation(mass_id, actor):
    return _transition(
        mass_id,
        actor,
        [OPEN],
        PREPARATION,
        MassEvent.MASS_MOVED_TO_PREPARATION,
        "A missa nao pode ser movida para preparacao por concorrencia",
        "preparation_at",
        side_effect=_drop_unconfirmed_attendance,
    )


def _fill_template_if_empty(mass_pk):
    if MassAssignment.objects.filter(mass_id=mass_pk).exists():
        return None
    mass_type = Mass.objects.filter(pk=mass_pk).values_list("mass_type", flat=True).first()
    config = get_mass_type_config(mass_type)
    _replace_assignments(mass_pk, [AssignmentEntry(role_key=key) for key in config.role_keys])
    return None


def finish_mass(mass_id, actor):
    return _transition(
        mass_id,
        actor,
        [PREPARATION],
        FINISHED,
        MassEvent.MASS_FINISHED,
        "A missa nao pode ser finalizada por concorrencia",
        "finished_at",
        side_effect=_fill_template_if_empty,
    )


def cancel_mass(mass_id, actor):
    return _transition(
        mass_id,
        actor,
        CANCELABLE_STATUSES,
        CANCELED,
        MassEvent.MASS_CANCELED,
        "A missa nao pode ser cancelada por concorrencia",
        "canceled_at",
    )


def _assert_creator(actor, mass):
    if mass.created_by_id != actor.user_id:
        raise NotFoundError(MASS_NOT_FOUND)


def delegate_mass(mass_id, actor, new_chief_by):
    assert_cerimoniario_role(actor)
    mass_pk = parse_mass_id(mass_id)
    if new_chief_by is None or (isinstance(new_chief_by, str) and not new_chief_by.strip()):
        raise ValidationError("newChiefBy e obrigatorio")
    new_chief_id = parse_user_id(new_chief_by)
    if new_chief_id is None:
        raise ValidationError("newChiefBy invalido")
    if not is_active_user_with_role(new_chief_id, CERIMONIARIO):
        raise ValidationError("newChiefBy deve ser um CERIMONIARIO ativo")

    now = timezone.now()
    guard = status_guard(*DELEGABLE_STATUSES) & Q(created_by_id=actor.user_id)
    with transaction.atomic():
        if not guarded_update(mass_pk, guard, chief_by_id=new_chief_id):
            raise_lost_update(
                mass_pk,
                actor,
                DELEGABLE_STATUSES,
                "A missa nao pode ser delegada por concorrencia",
                authorize=_assert_creator,
            )
        append_event(mass_pk, MassEvent.MASS_DELEGATED, actor, at=now, payload={"newChiefBy": new_chief_id})
    logger.info("mass_delegated", mass_id=str(mass_pk), actor_id=actor.user_id, new_chief_by=new_chief_id)
    return load_mass(mass_pk)


def assign_roles(mass_id, actor, assignments):
    assert_cerimoniario_role(actor)
    mass_pk = parse_mass_id(mass_id)
    entries = normalize_assignments(assignments)
    now = timezone.now()
    with transaction.atomic():
        if not guarded_update(mass_pk, admin_guard(actor, PREPARATION)):
            raise_lost_update(mass_pk, actor, [PREPARATION], "As funcoes nao puderam ser atribuidas por concorrencia")
        _replace_assignments(mass_pk, entries)
        append_event(
            mass_pk, MassEvent.MASS_ASSIGNMENTS_UPDATED, actor, at=now, payload={"assignmentsCount": len(entries)}
        )
    logger.info("mass_assignments_updated", mass_id=str(mass_pk), actor_id=actor.user_id, count=len(entries))
    return load_mass(mass_pk)


def auto_assign_roles(mass_id, actor):
    """Calcula a distribuicao sugerida; nao grava nada (use assign_roles para persistir)."""
    assert_cerimoniario_role(actor)
    mass = load_mass(mass_id)
    assert_can_administer(actor, mass)
    assert_status(mass, [PREPARATION])
    assignments = compute_auto_assignments(mass)
    logger.info("mass_auto_assign_computed", mass_id=str(mass.pk), actor_id=actor.user_id, count=len(assignments))
    return assignments
