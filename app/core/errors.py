"""Erros de dominio da API e os handlers que os transformam no envelope padrao.

Toda falha chega ao cliente como ``{"success": false, "message": "..."}``; o
status HTTP indica o tipo do erro.
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("voyagee.errors")

GENERIC_ERROR_MESSAGE = "Erro interno do servidor."


class ApiError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(status_code=self.status_code, detail=self.message, headers=headers)


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Dados invalidos."


class InvalidState(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Operacao nao permitida no estado atual."


class Unauthenticated(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Acesso negado. Nenhum token fornecido."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class InvalidCredentials(Unauthenticated):
    default_message = "Email ou senha incorretos"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Acesso negado."


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Recurso não encontrado."


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Registro em conflito."


class Internal(ApiError):
    pass


def _envelope(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api error path=%s message=%s", request.url.path, exc.message)
        return _envelope(exc.status_code, GENERIC_ERROR_MESSAGE)
    return _envelope(exc.status_code, exc.message, exc.headers)


def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Erro na requisicao."
    return _envelope(exc.status_code, message, getattr(exc, "headers", None))


def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Dados invalidos."
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return _envelope(status.HTTP_400_BAD_REQUEST, message)


def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Erro inesperado method=%s path=%s", request.method, request.url.path)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
