"""Distribuicao automatica de funcoes liturgicas entre os acolitos confirmados.

A pontuacao de cada acolito soma tres parcelas:

- chegada: 100 para quem confirmou primeiro, 0 para o ultimo (interpolacao linear);
- rodizio: (100 - peso da funcao exercida na missa finalizada mais recente) * 0.6;
- perfil: (pontuacao global - 50) * 0.4.

As funcoes do modelo sao preenchidas em ordem decrescente de peso pelos acolitos
de maior pontuacao. Quem sobrar recebe a funcao reserva do tipo de missa.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from accounts.services.lookup import find_profiles
from core.models import MassAssignment
from core.services.liturgy import (
    get_mass_type_config,
    get_role_weight_map,
    normalize_role_keys,
    role_weight,
)
from core.services.liturgy_defaults import NONE_ROLE_KEY
from core.services.statuses import FINISHED, stored_values

MAX_ARRIVAL_SCORE = 100
ROTATION_FACTOR = 0.6
PROFILE_FACTOR = 0.4
DEFAULT_GLOBAL_SCORE = 50


@dataclass(frozen=True)
class ConfirmedParticipant:
    user_id: int
    confirmed_at: datetime
    global_score: object = DEFAULT_GLOBAL_SCORE
    previous_function_weight: int = 0


@dataclass(frozen=True)
class RankedParticipant:
    user_id: int
    arrival_index: int
    arrival_score: int
    rotation_bonus: int
    profile_bonus: int
    global_score: int
    priority_score: int


@dataclass(frozen=True)
class AssignmentEntry:
    role_key: str
    user_id: Optional[int] = None


def _round_score(value):
    # Arredonda .5 para cima, inclusive para valores negativos.
    return math.floor(value + 0.5)


def normalize_global_score(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_GLOBAL_SCORE
    if math.isnan(value) or value < 0 or value > 100:
        return DEFAULT_GLOBAL_SCORE
    return value


def order_role_slots(role_keys, weights):
    slots = [key for key in normalize_role_keys(role_keys) if key != NONE_ROLE_KEY]
    return sorted(slots, key=lambda key: (-role_weight(weights, key), key))


def order_by_arrival(participants):
    unique = {}
    for participant in participants:
        unique.setdefault(participant.user_id, participant)
    return sorted(unique.values(), key=lambda participant: (participant.confirmed_at, str(participant.user_id)))


def arrival_score(index, total):
    if total <= 1:
        return MAX_ARRIVAL_SCORE
    return _round_score(MAX_ARRIVAL_SCORE * (total - 1 - index) / (total - 1))


def rank_participants(participants):
    ordered = order_by_arrival(participants)
    ranked = []
    for index, participant in enumerate(ordered):
        arrival = arrival_score(index, len(ordered))
        rotation = _round_score((100 - (participant.previous_function_weight or 0)) * ROTATION_FACTOR)
        global_score = normalize_global_score(participant.global_score)
        profile = _round_score((global_score - 50) * PROFILE_FACTOR)
        ranked.append(
            RankedParticipant(
                user_id=participant.user_id,
                arrival_index=index,
                arrival_score=arrival,
                rotation_bonus=rotation,
                profile_bonus=profile,
                global_score=global_score,
                priority_score=arrival + rotation + profile,
            )
        )
    ranked.sort(key=lambda item: (-item.priority_score, item.arrival_index, -item.global_score, str(item.user_id)))
    return ranked


def build_assignments(role_keys, weights, participants, fallback_role_key=None):
    """Funcao pura: mesmas entradas, mesma distribuicao."""
    slots = order_role_slots(role_keys, weights)
    ranked = rank_participants(participants)
    assignments = []
    for index, role_key in enumerate(slots):
        user_id = ranked[index].user_id if index < len(ranked) else None
        assignments.append(AssignmentEntry(role_key=role_key, user_id=user_id))
    overflow_role_key = fallback_role_key or NONE_ROLE_KEY
    for participant in ranked[len(slots):]:
        assignments.append(AssignmentEntry(role_key=overflow_role_key, user_id=participant.user_id))
    return assignments


def recent_role_keys(mass, user_ids):
    """Funcoes de cada acolito na missa finalizada mais recente anterior a `mass`.

    Percorre as missas da mais nova para a mais antiga e para assim que todos os
    acolitos tiverem alguma missa resolvida; nao e o maximo historico.
    """
    pending = set(user_ids)
    resolved = {}
    if not pending:
        return resolved
    rows = (
        MassAssignment.objects.filter(
            user_id__in=pending,
            mass__status__in=stored_values(FINISHED),
            mass__scheduled_at__lt=mass.scheduled_at,
        )
        .exclude(mass_id=mass.pk)
        .order_by("-mass__scheduled_at", "mass_id", "position")
        .values_list("mass_id", "user_id", "role_key")
    )
    current_mass_id = None
    batch = {}
    for mass_id, user_id, role_key in rows.iterator():
        if mass_id != current_mass_id:
            for resolved_id, keys in batch.items():
                resolved[resolved_id] = keys
                pending.discard(resolved_id)
            batch = {}
            current_mass_id = mass_id
            if not pending:
                break
        if user_id in pending:
            batch.setdefault(user_id, []).append(role_key)
    for resolved_id, keys in batch.items():
        resolved[resolved_id] = keys
    return resolved


def collect_participants(mass):
    confirmed = list(mass.confirmed_entries.order_by("id").values_list("user_id", "confirmed_at"))
    user_ids = list(dict.fromkeys(user_id for user_id, _ in confirmed))
    profiles = {profile.user_id: profile for profile in find_profiles(user_ids)}
    history = recent_role_keys(mass, user_ids)

    known_keys = [key for keys in history.values() for key in keys]
    known_keys += [profile.last_role_key for profile in profiles.values() if profile.last_role_key]
    weights = get_role_weight_map(known_keys)

    participants = []
    for user_id, confirmed_at in confirmed:
        profile = profiles.get(user_id)
        if user_id in history:
            previous_weight = max(role_weight(weights, key) for key in history[user_id])
        elif profile and profile.last_role_key:
            previous_weight = role_weight(weights, profile.last_role_key)
        else:
            previous_weight = 0
        participants.append(
            ConfirmedParticipant(
                user_id=user_id,
                confirmed_at=confirmed_at,
                global_score=profile.global_score if profile else DEFAULT_GLOBAL_SCORE,
                previous_function_weight=previous_weight,
            )
        )
    return participants


def compute_auto_assignments(mass):
    config = get_mass_type_config(mass.mass_type)
    role_keys = [key for key in config.role_keys if key != NONE_ROLE_KEY]
    weights = get_role_weight_map(role_keys)
    return build_assignments(role_keys, weights, collect_participants(mass), config.fallback_role_key)
