from datetime import timedelta

from django.utils import timezone

from accounts.models import User
from core.models import Mass
from core.services.guards import Actor
from core.services.statuses import SCHEDULED


def make_user(username, role=User.ROLE_ACOLITO, **extra):
    return User.objects.create_user(username=username, name=username.title(), password="pass", role=role, **extra)


def make_mass(creator, status=SCHEDULED, mass_type="SIMPLES", scheduled_at=None, chief=None, **extra):
    return Mass.objects.create(
        status=status,
        mass_type=mass_type,
        scheduled_at=scheduled_at or timezone.now() + timedelta(days=1),
        created_by=creator,
        chief_by=chief or creator,
        **extra,
    )


def actor_for(user):
    return Actor.from_user(user)
