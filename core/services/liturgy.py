import math
import re
from dataclasses import dataclass, field

import structlog
from django.db import IntegrityError, transaction

from core.models import LiturgyMassType, LiturgyRole
from core.services.errors import ConflictError, NotFoundError, ValidationError
from core.services.liturgy_defaults import DEFAULT_LITURGY_MASS_TYPES, DEFAULT_LITURGY_ROLES, NONE_ROLE_KEY

logger = structlog.get_logger(__name__)

MAX_ROLE_SCORE = 1000
KEY_ALLOCATION_ATTEMPTS = 3


@dataclass(frozen=True)
class MassTypeConfig:
    role_keys: list = field(default_factory=list)
    fallback_role_key: str = None


def normalize_key(value):
    return re.sub(r"\s+", "_", str(value).strip().upper())


def normalize_role_keys(role_keys):
    seen = set()
    normalized = []
    for role_key in role_keys or []:
        key = normalize_key(role_key)
        if not key or key in seen:
            continue
        seen.add(key)
        normalized.append(key)
    return normalized


def _normalize_fallback(fallback_role_key, role_keys):
    if not isinstance(fallback_role_key, str) or not fallback_role_key.strip():
        return None
    fallback = normalize_key(fallback_role_key)
    return fallback if fallback in role_keys else None


def ensure_liturgy_defaults():
    created = 0
    if not LiturgyRole.objects.exists():
        LiturgyRole.objects.bulk_create(
            [
                LiturgyRole(
                    key=normalize_key(role["key"]),
                    label=role["label"],
                    description=role["description"],
                    score=role["score"],
                )
                for role in DEFAULT_LITURGY_ROLES
            ]
        )
        created += len(DEFAULT_LITURGY_ROLES)
    for mass_type in DEFAULT_LITURGY_MASS_TYPES:
        _, was_created = LiturgyMassType.objects.get_or_create(
            key=normalize_key(mass_type["key"]),
            defaults={
                "label": mass_type["label"],
                "role_keys": normalize_role_keys(mass_type["role_keys"]),
                "fallback_role_key": NONE_ROLE_KEY,
            },
        )
        created += int(was_created)
    if created:
        logger.info("liturgy_defaults_seeded", created=created)
    return created


def list_roles(active_only=False):
    ensure_liturgy_defaults()
    roles = LiturgyRole.objects.all()
    if active_only:
        roles = roles.filter(active=True)

    def sort_key(role):
        if role.key.isdigit():
            return (0, int(role.key), "")
        return (1, 0, role.key)

    return sorted(roles, key=sort_key)


def list_mass_types(active_only=False):
    ensure_liturgy_defaults()
    mass_types = LiturgyMassType.objects.order_by("label")
    if active_only:
        mass_types = mass_types.filter(active=True)
    return list(mass_types)


def is_valid_active_mass_type(mass_type_key):
    ensure_liturgy_defaults()
    return LiturgyMassType.objects.filter(key=normalize_key(mass_type_key), active=True).exists()


def get_mass_type_config(mass_type_key):
    ensure_liturgy_defaults()
    mass_type = LiturgyMassType.objects.filter(key=normalize_key(mass_type_key), active=True).first()
    if mass_type is None:
        return MassTypeConfig()
    role_keys = normalize_role_keys(mass_type.role_keys if isinstance(mass_type.role_keys, list) else [])
    return MassTypeConfig(
        role_keys=role_keys,
        fallback_role_key=_normalize_fallback(mass_type.fallback_role_key, role_keys),
    )


def get_role_weight_map(role_keys):
    """Peso configurado por funcao. Chaves desconhecidas ficam de fora (peso 0 para quem consulta)."""
    ensure_liturgy_defaults()
    keys = normalize_role_keys(role_keys)
    if not keys:
        return {}
    rows = LiturgyRole.objects.filter(key__in=keys).values_list("key", "score")
    return {normalize_key(key): score or 0 for key, score in rows}


def role_weight(weights, role_key):
    if not role_key:
        return 0
    return weights.get(normalize_key(role_key), 0)


def _next_numeric_key(model):
    keys = model.objects.values_list("key", flat=True)
    return str(max([int(key) for key in keys if key.isdigit()] or [0]) + 1)


def _create_with_next_key(model, **fields):
    for attempt in range(KEY_ALLOCATION_ATTEMPTS):
        key = _next_numeric_key(model)
        try:
            with transaction.atomic():
                return model.objects.create(key=key, **fields)
        except IntegrityError:
            logger.warning("liturgy_key_collision", model=model.__name__, key=key, attempt=attempt + 1)
    raise ConflictError("Nao foi possivel gerar uma chave unica, tente novamente")


def parse_score(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("score invalido")
    if math.isnan(value) or math.isinf(value):
        raise ValidationError("score invalido")
    score = math.floor(value + 0.5)
    if score < 0 or score > MAX_ROLE_SCORE:
        raise ValidationError("score invalido")
    return score


def create_role(label, score, description="", active=True):
    ensure_liturgy_defaults()
    label = (label or "").strip()
    if not label:
        raise ValidationError("Dados invalidos para funcao liturgica")
    role = _create_with_next_key(
        LiturgyRole,
        label=label,
        description=(description or "").strip(),
        score=parse_score(score),
        active=bool(active),
    )
    logger.info("liturgy_role_created", key=role.key)
    return role


def update_role(key, **changes):
    ensure_liturgy_defaults()
    key = normalize_key(key or "")
    if not key:
        raise ValidationError("key obrigatoria")
    updates = {}
    if "label" in changes:
        label = (changes["label"] or "").strip() if isinstance(changes["label"], str) else ""
        if not label:
            raise ValidationError("label invalida")
        updates["label"] = label
    if "description" in changes:
        description = changes["description"]
        updates["description"] = description.strip() if isinstance(description, str) else ""
    if "score" in changes:
        updates["score"] = parse_score(changes["score"])
    if "active" in changes:
        if not isinstance(changes["active"], bool):
            raise ValidationError("active invalido")
        updates["active"] = changes["active"]
    if not updates:
        raise ValidationError("Nenhuma alteracao enviada")

    role = LiturgyRole.objects.filter(key=key).first()
    if role is None:
        raise NotFoundError("Funcao liturgica nao encontrada")
    for attr, value in updates.items():
        setattr(role, attr, value)
    role.save(update_fields=list(updates) + ["updated_at"])
    logger.info("liturgy_role_updated", key=key, fields=sorted(updates))
    return role


def _validated_role_keys(role_keys):
    if not isinstance(role_keys, (list, tuple)):
        raise ValidationError("roleKeys deve ser uma lista")
    keys = normalize_role_keys([key for key in role_keys if isinstance(key, str)])
    if not keys:
        raise ValidationError("roleKeys nao pode ser vazio")
    known = set(LiturgyRole.objects.filter(key__in=keys).values_list("key", flat=True))
    unknown = [key for key in keys if key not in known]
    if unknown:
        raise ValidationError("Uma ou mais funcoes nao existem", details={"roleKeys": unknown})
    return keys


def _validated_fallback(fallback_role_key, role_keys):
    if fallback_role_key in (None, ""):
        return None
    if not isinstance(fallback_role_key, str):
        raise ValidationError("fallbackRoleKey invalido")
    fallback = normalize_key(fallback_role_key)
    if fallback not in role_keys:
        raise ValidationError("fallbackRoleKey deve estar nas funcoes do tipo")
    return fallback


def create_mass_type(label, role_keys, fallback_role_key=None, active=True):
    ensure_liturgy_defaults()
    label = label.strip() if isinstance(label, str) else ""
    keys = _validated_role_keys(role_keys)
    fallback = _validated_fallback(fallback_role_key, keys)
    if not label:
        raise ValidationError("Dados invalidos para tipo de missa")
    mass_type = _create_with_next_key(
        LiturgyMassType,
        label=label,
        role_keys=keys,
        fallback_role_key=fallback,
        active=bool(active),
    )
    logger.info("liturgy_mass_type_created", key=mass_type.key)
    return mass_type


def update_mass_type(key, **changes):
    ensure_liturgy_defaults()
    key = normalize_key(key or "")
    if not key:
        raise ValidationError("key obrigatoria")
    mass_type = LiturgyMassType.objects.filter(key=key).first()
    updates = {}
    if "label" in changes:
        label = changes["label"].strip() if isinstance(changes["label"], str) else ""
        if not label:
            raise ValidationError("label invalida")
        updates["label"] = label
    if "role_keys" in changes:
        updates["role_keys"] = _validated_role_keys(changes["role_keys"])
        updates["fallback_role_key"] = _validated_fallback(changes.get("fallback_role_key"), updates["role_keys"])
    elif "fallback_role_key" in changes:
        if mass_type is None:
            raise NotFoundError("Tipo de missa nao encontrado")
        current = mass_type.role_keys if isinstance(mass_type.role_keys, list) else []
        updates["fallback_role_key"] = _validated_fallback(changes["fallback_role_key"], current)
    if "active" in changes:
        if not isinstance(changes["active"], bool):
            raise ValidationError("active invalido")
        updates["active"] = changes["active"]
    if not updates:
        raise ValidationError("Nenhuma alteracao enviada")

    if mass_type is None:
        raise NotFoundError("Tipo de missa nao encontrado")
    for attr, value in updates.items():
        setattr(mass_type, attr, value)
    mass_type.save(update_fields=list(updates) + ["updated_at"])
    logger.info("liturgy_mass_type_updated", key=key, fields=sorted(updates))
    return mass_type
