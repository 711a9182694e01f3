"""
Taxonomie des erreurs du service quiz.

Chaque erreur est une HTTPException portant un `code` stable ; les handlers
enregistrés par `install_error_handlers` rendent l'enveloppe
{"success": false, "error": {"code", "message"}} attendue par le client.
"""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
)

logger = logging.getLogger(__name__)


class QuizError(HTTPException):
    code = "INTERNAL_ERROR"
    status_code_default = 500

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code_default, detail=message)
        self.message = message


class ValidationError(QuizError):
    code = "VALIDATION_ERROR"
    status_code_default = HTTP_400_BAD_REQUEST


class Unauthorized(QuizError):
    code = "UNAUTHORIZED"
    status_code_default = HTTP_401_UNAUTHORIZED


class Forbidden(QuizError):
    code = "FORBIDDEN"
    status_code_default = HTTP_403_FORBIDDEN


class NotFound(QuizError):
    code = "NOT_FOUND"
    status_code_default = HTTP_404_NOT_FOUND


_CODES_BY_STATUS = {
    HTTP_400_BAD_REQUEST: ValidationError.code,
    HTTP_401_UNAUTHORIZED: Unauthorized.code,
    HTTP_403_FORBIDDEN: Forbidden.code,
    HTTP_404_NOT_FOUND: NotFound.code,
}


def error_body(code: str, message: str) -> dict:
    return {"success": False, "error": {"code": code, "message": message}}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuizError)
    async def _quiz_error(request: Request, exc: QuizError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        # requête mal formée : rejetée avant la logique métier
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{where}: {first.get('msg', 'invalid request')}" if where else "Requête invalide."
        return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content=error_body(ValidationError.code, message))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        code = _CODES_BY_STATUS.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )
