"""Presenca dos acolitos numa missa aberta: entrar, pedir confirmacao e decidir.

Cada par (missa, acolito) anda em `nenhum -> entrou -> pendente -> confirmado`.
"""
import uuid
from dataclasses import dataclass

import structlog
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.models import Mass, MassConfirmation, MassConfirmationRequest, MassEvent, MassJoin
from core.services.concurrency import (
    admin_guard,
    create_unique,
    guarded_update,
    parse_mass_id,
    reload_mass,
    status_guard,
)
from core.services.errors import ConflictError, NotFoundError, ValidationError
from core.services.events import append_event
from core.services.guards import (
    assert_acolito_role,
    assert_can_administer,
    assert_cerimoniario_role,
    assert_status,
)
from core.services.queries import load_mass
from core.services.statuses import OPEN

logger = structlog.get_logger(__name__)

CONFIRM = "confirm"
DENY = "deny"
DECISIONS = {CONFIRM, DENY}

REQUEST_NOT_FOUND = "Solicitacao nao encontrada"
ALREADY_CONFIRMED = "Presenca ja confirmada"
JOIN_REQUIRED = "Entre na missa antes de solicitar confirmacao"


@dataclass(frozen=True)
class ConfirmationPreview:
    mass: Mass
    request_id: str
    pending_user_id: int


def parse_request_id(request_id):
    if isinstance(request_id, uuid.UUID):
        return request_id
    try:
        return uuid.UUID(str(request_id).strip())
    except (TypeError, ValueError, AttributeError):
        raise NotFoundError(REQUEST_NOT_FOUND)


def join_mass(mass_id, actor):
    """Entrada idempotente: repetir a chamada devolve a missa sem duplicar a entrada."""
    assert_acolito_role(actor)
    mass_pk = parse_mass_id(mass_id)
    now = timezone.now()
    guard = status_guard(OPEN) & ~Q(joined_entries__user_id=actor.user_id)
    joined = False
    try:
        with transaction.atomic():
            if guarded_update(mass_pk, guard):
                create_unique(
                    MassJoin, "Voce ja entrou nesta missa", mass_id=mass_pk, user_id=actor.user_id, joined_at=now
                )
                append_event(mass_pk, MassEvent.MASS_JOINED, actor, at=now)
                joined = True
    except ConflictError:
        # Outra requisicao do mesmo acolito inseriu a entrada primeiro.
        joined = False

    if joined:
        logger.info("mass_joined", mass_id=str(mass_pk), actor_id=actor.user_id)
    else:
        assert_status(reload_mass(mass_pk), [OPEN])
    return load_mass(mass_pk)


def _existing_request_or_raise(mass_pk, actor):
    mass = reload_mass(mass_pk)
    assert_status(mass, [OPEN])
    pending = mass.pending_requests.filter(user_id=actor.user_id).first()
    if pending is not None:
        return str(pending.request_id)
    if not mass.joined_entries.filter(user_id=actor.user_id).exists():
        raise ConflictError(JOIN_REQUIRED)
    if mass.confirmed_entries.filter(user_id=actor.user_id).exists():
        raise ConflictError(ALREADY_CONFIRMED)
    logger.warning("mass_guarded_update_lost", mass_id=str(mass_pk), actor_id=actor.user_id)
    raise ConflictError("A confirmacao nao pode ser solicitada por concorrencia")


def request_confirmation(mass_id, actor):
    """Abre um pedido de confirmacao e devolve seu request_id.

    Se ja houver pedido pendente do acolito, devolve o mesmo request_id.
    """
    assert_acolito_role(actor)
    mass_pk = parse_mass_id(mass_id)
    now = timezone.now()
    request_id = uuid.uuid4()
    guard = (
        status_guard(OPEN)
        & Q(joined_entries__user_id=actor.user_id)
        & ~Q(confirmed_entries__user_id=actor.user_id)
        & ~Q(pending_requests__user_id=actor.user_id)
    )
    created = False
    try:
        with transaction.atomic():
            if guarded_update(mass_pk, guard):
                create_unique(
                    MassConfirmationRequest,
                    "Solicitacao ja registrada",
                    mass_id=mass_pk,
                    user_id=actor.user_id,
                    request_id=request_id,
                    requested_at=now,
                )
                append_event(
                    mass_pk,
                    MassEvent.MASS_CONFIRMATION_REQUESTED,
                    actor,
                    at=now,
                    payload={"requestId": str(request_id)},
                )
                created = True
    except ConflictError:
        created = False

    if not created:
        return _existing_request_or_raise(mass_pk, actor)
    logger.info("mass_confirmation_requested", mass_id=str(mass_pk), actor_id=actor.user_id)
    return str(request_id)


def preview_confirmation(mass_id, actor, request_id):
    """Valida um pedido pendente para exibir ao cerimoniario; nao altera a missa."""
    assert_cerimoniario_role(actor)
    mass = load_mass(mass_id)
    assert_can_administer(actor, mass)
    assert_status(mass, [OPEN])
    request_uuid = parse_request_id(request_id)
    pending = next((entry for entry in mass.pending_requests.all() if entry.request_id == request_uuid), None)
    if pending is None:
        raise NotFoundError(REQUEST_NOT_FOUND)
    if any(entry.user_id == pending.user_id for entry in mass.confirmed_entries.all()):
        raise ConflictError(ALREADY_CONFIRMED)
    return ConfirmationPreview(mass=mass, request_id=str(request_uuid), pending_user_id=pending.user_id)


def _diagnose_decision(mass_pk, actor, request_uuid):
    mass = reload_mass(mass_pk)
    assert_can_administer(actor, mass)
    assert_status(mass, [OPEN])
    if not mass.pending_requests.filter(request_id=request_uuid).exists():
        raise NotFoundError(REQUEST_NOT_FOUND)
    logger.warning("mass_guarded_update_lost", mass_id=str(mass_pk), actor_id=actor.user_id)
    raise ConflictError("A confirmacao nao pode ser registrada por concorrencia")


def decide_confirmation(mass_id, actor, request_id, decision):
    """Consome o pedido pendente e, se `decision` for confirm, confirma o acolito.

    Somente a primeira decisao sobre um request_id vence; as seguintes recebem
    "Solicitacao nao encontrada".
    """
    assert_cerimoniario_role(actor)
    mass_pk = parse_mass_id(mass_id)
    if decision not in DECISIONS:
        raise ValidationError("decision deve ser confirm ou deny")
    request_uuid = parse_request_id(request_id)
    now = timezone.now()
    guard = admin_guard(actor, OPEN) & Q(pending_requests__request_id=request_uuid)

    with transaction.atomic():
        if not guarded_update(mass_pk, guard):
            _diagnose_decision(mass_pk, actor, request_uuid)
        pending = MassConfirmationRequest.objects.filter(mass_id=mass_pk, request_id=request_uuid).first()
        if pending is None:
            raise NotFoundError(REQUEST_NOT_FOUND)
        deleted, _ = MassConfirmationRequest.objects.filter(pk=pending.pk).delete()
        if not deleted:
            raise NotFoundError(REQUEST_NOT_FOUND)
        if decision == CONFIRM:
            create_unique(
                MassConfirmation, ALREADY_CONFIRMED, mass_id=mass_pk, user_id=pending.user_id, confirmed_at=now
            )
        event_type = MassEvent.MASS_CONFIRMED if decision == CONFIRM else MassEvent.MASS_CONFIRMATION_DENIED
        append_event(
            mass_pk,
            event_type,
            actor,
            at=now,
            payload={"requestId": str(request_uuid), "confirmedUserId": pending.user_id},
        )
    logger.info(
        "mass_confirmation_decided",
        mass_id=str(mass_pk),
        actor_id=actor.user_id,
        decision=decision,
        user_id=pending.user_id,
    )
    return load_mass(mass_pk)
