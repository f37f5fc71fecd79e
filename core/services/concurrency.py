"""Atualizacoes condicionais sobre a linha da missa.

Toda acao que altera uma missa comeca por um unico UPDATE cujo filtro carrega a
pre-condicao (status, autorizacao, unicidade). Se nenhuma linha casar, a acao
rele a missa uma vez para produzir o erro exato e nao tenta de novo.
"""
import uuid

import structlog
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from core.models import Mass
from core.services.errors import ConflictError, MASS_NOT_FOUND, NotFoundError
from core.services.guards import administered_by, assert_can_administer, assert_status
from core.services.statuses import stored_values

logger = structlog.get_logger(__name__)


def parse_mass_id(mass_id):
    if isinstance(mass_id, uuid.UUID):
        return mass_id
    try:
        return uuid.UUID(str(mass_id))
    except (TypeError, ValueError, AttributeError):
        raise NotFoundError(MASS_NOT_FOUND)


def status_guard(*statuses):
    return Q(status__in=stored_values(*statuses))


def admin_guard(actor, *statuses):
    return status_guard(*statuses) & administered_by(actor)


def guarded_update(mass_pk, guard, **changes):
    """Aplica `changes` somente se a missa casar com `guard`. Retorna True se venceu."""
    changes.setdefault("updated_at", timezone.now())
    changes["version"] = F("version") + 1
    updated = Mass.objects.filter(guard, pk=mass_pk).update(**changes)
    return updated == 1


def reload_mass(mass_pk):
    mass = Mass.objects.filter(pk=mass_pk).first()
    if mass is None:
        raise NotFoundError(MASS_NOT_FOUND)
    return mass


def raise_lost_update(mass_pk, actor, allowed_statuses, message, authorize=assert_can_administer):
    """Diagnostico apos um UPDATE condicional sem efeito.

    Ordem: missa inexistente, ator sem relacao administrativa (ambos NotFound),
    status incompativel e, por fim, conflito de concorrencia.
    """
    mass = reload_mass(mass_pk)
    if authorize is not None:
        authorize(actor, mass)
    assert_status(mass, allowed_statuses)
    logger.warning("mass_guarded_update_lost", mass_id=str(mass_pk), actor_id=actor.user_id)
    raise ConflictError(message)


def create_unique(model, conflict_message, **fields):
    """Cria a linha num savepoint, traduzindo violacao de unicidade em conflito."""
    try:
        with transaction.atomic():
            return model.objects.create(**fields)
    except IntegrityError:
        raise ConflictError(conflict_message)
