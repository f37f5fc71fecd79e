from dataclasses import dataclass

from django.contrib.auth import get_user_model


@dataclass(frozen=True)
class UserProfile:
    user_id: int
    global_score: object
    last_role_key: str


def parse_user_id(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


def _unique_ids(user_ids):
    ids = []
    for value in user_ids:
        user_id = parse_user_id(value)
        if user_id is not None and user_id not in ids:
            ids.append(user_id)
    return ids


def find_profiles(user_ids):
    ids = _unique_ids(user_ids)
    if not ids:
        return []
    rows = get_user_model().objects.filter(id__in=ids).values_list("id", "global_score", "last_role_key")
    return [UserProfile(user_id=pk, global_score=score, last_role_key=role_key or "") for pk, score, role_key in rows]


def get_user_name_map(user_ids):
    ids = _unique_ids(user_ids)
    if not ids:
        return {}
    return dict(get_user_model().objects.filter(id__in=ids).values_list("id", "name"))


def active_user_ids_with_role(user_ids, role):
    ids = _unique_ids(user_ids)
    if not ids:
        return set()
    return set(
        get_user_model().objects.filter(id__in=ids, role=role, is_active=True).values_list("id", flat=True)
    )


def is_active_user_with_role(user_id, role):
    user_id = parse_user_id(user_id)
    return user_id is not None and user_id in active_user_ids_with_role([user_id], role)
