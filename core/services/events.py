from django.utils import timezone

from core.models import MassEvent


def append_event(mass_id, event_type, actor, at=None, payload=None):
    return MassEvent.objects.create(
        mass_id=mass_id,
        event_type=event_type,
        actor_id=actor.user_id,
        at=at or timezone.now(),
        payload=payload,
    )
