import structlog
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response

from core.services.errors import DomainError

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Erro no servidor"


def error_response(request, code, message, status_code, details=None, headers=None):
    body = {"code": code, "message": message, "requestId": getattr(request, "request_id", None)}
    if details:
        body["details"] = details
    return Response({"error": body}, status=status_code, headers=headers)


def _first_message(detail):
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
    if isinstance(detail, (list, tuple)) and detail:
        return _first_message(detail[0])
    return str(detail)


def domain_exception_handler(exc, context):
    """Traduz erros de dominio e do DRF para {"error": {code, message, requestId}}.

    Erros inesperados viram 500 com mensagem generica, sem detalhes internos.
    """
    request = context.get("request")

    if isinstance(exc, DomainError):
        if exc.status_code >= 500:
            logger.error("domain_error", code=exc.code, message=exc.message)
        return error_response(request, exc.code, exc.message, exc.status_code, details=exc.details)

    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        headers = {"WWW-Authenticate": exc.auth_header} if getattr(exc, "auth_header", None) else None
        return error_response(request, "UNAUTHENTICATED", "Nao autenticado", status.HTTP_401_UNAUTHORIZED, headers=headers)

    if isinstance(exc, exceptions.PermissionDenied):
        return error_response(request, "FORBIDDEN", "Acesso negado", status.HTTP_403_FORBIDDEN)

    if isinstance(exc, (Http404, exceptions.NotFound)):
        return error_response(request, "NOT_FOUND", "Recurso nao encontrado", status.HTTP_404_NOT_FOUND)

    if isinstance(exc, exceptions.ParseError):
        return error_response(request, "VALIDATION_ERROR", "JSON invalido", status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, exceptions.ValidationError):
        return error_response(
            request,
            "VALIDATION_ERROR",
            _first_message(exc.detail),
            status.HTTP_400_BAD_REQUEST,
            details=exc.detail if isinstance(exc.detail, dict) else None,
        )

    if isinstance(exc, exceptions.MethodNotAllowed):
        return error_response(request, "METHOD_NOT_ALLOWED", "Metodo nao permitido", exc.status_code)

    if isinstance(exc, exceptions.APIException):
        return error_response(request, "ERROR", _first_message(exc.detail), exc.status_code)

    logger.exception("unhandled_api_error", error_type=type(exc).__name__)
    return error_response(request, "INTERNAL_ERROR", GENERIC_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR)
