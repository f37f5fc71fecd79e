from dataclasses import dataclass

from django.db.models import Q

from core.services.errors import ConflictError, ForbiddenError, MASS_NOT_FOUND, NotFoundError
from core.services.statuses import normalize_status

CERIMONIARIO = "CERIMONIARIO"
ACOLITO = "ACOLITO"


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.pk, role=user.role)

    @property
    def is_cerimoniario(self):
        return self.role == CERIMONIARIO


def assert_cerimoniario_role(actor):
    if actor.role != CERIMONIARIO:
        raise ForbiddenError("Apenas CERIMONIARIO pode executar esta acao")


def assert_acolito_role(actor):
    if actor.role != ACOLITO:
        raise ForbiddenError("Apenas ACOLITO pode executar esta acao")


def administered_by(actor):
    return Q(created_by_id=actor.user_id) | Q(chief_by_id=actor.user_id)


def can_administer_mass(actor, mass):
    return actor.user_id in (mass.created_by_id, mass.chief_by_id)


def assert_can_administer(actor, mass):
    if not can_administer_mass(actor, mass):
        raise NotFoundError(MASS_NOT_FOUND)


def assert_status(mass, allowed_statuses):
    status = normalize_status(mass.status)
    if status not in allowed_statuses:
        raise ConflictError(f"Acao nao permitida no status {status or mass.status}")
