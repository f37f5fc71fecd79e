class DomainError(Exception):
    """Erro de dominio com codigo estavel e mensagem segura para o usuario."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthenticatedError(DomainError):
    code = "UNAUTHENTICATED"
    status_code = 401


class ForbiddenError(DomainError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(DomainError):
    # Tambem usado quando o ator nao administra a missa, para nao revelar sua existencia.
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(DomainError):
    code = "CONFLICT"
    status_code = 409


class RateLimitedError(DomainError):
    code = "RATE_LIMITED"
    status_code = 429


MASS_NOT_FOUND = "Missa nao encontrada"
