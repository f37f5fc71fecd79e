import json

from core.services.errors import ConflictError, ValidationError

CONFIRMATION_TOKEN_TYPE = "MASS_CONFIRMATION"
INVALID_TOKEN = "QR invalido"


def build_confirmation_payload(mass_id, request_id):
    return json.dumps(
        {"type": CONFIRMATION_TOKEN_TYPE, "massId": str(mass_id), "requestId": str(request_id)},
        separators=(",", ":"),
    )


def parse_confirmation_payload(raw, expected_mass_id):
    """Le o QR apresentado pelo acolito e devolve o requestId.

    O QR precisa pertencer a missa que o cerimoniario esta administrando.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("qrPayload obrigatorio")
    try:
        parsed = json.loads(raw)
    except ValueError:
        raise ValidationError(INVALID_TOKEN)
    if not isinstance(parsed, dict) or parsed.get("type") != CONFIRMATION_TOKEN_TYPE:
        raise ValidationError(INVALID_TOKEN)
    mass_id = parsed.get("massId")
    request_id = parsed.get("requestId")
    if not isinstance(mass_id, str) or not isinstance(request_id, str) or not request_id:
        raise ValidationError(INVALID_TOKEN)
    if mass_id.strip().lower() != str(expected_mass_id).strip().lower():
        raise ConflictError("QR nao pertence a esta missa")
    return request_id
