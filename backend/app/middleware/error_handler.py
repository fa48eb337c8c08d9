import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import ValidationError
from app.utils.exceptions import SchedulingError
from app.utils.logger import log_event, EventTypes

logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error},
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)

        except ValidationError as ve:
            return error_response(400, "VALIDATION_ERROR", "Invalid data", ve.errors(include_url=False))

        except HTTPException as he:
            return error_response(he.status_code, "HTTP_EXCEPTION", str(he.detail))

        except Exception as e:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}")
            await log_event(EventTypes.SYSTEM_ERROR, {"method": request.method, "path": request.url.path, "error": str(e)})
            return error_response(500, "INTERNAL_ERROR", "An internal error occurred.")


async def scheduling_error_handler(request: Request, exc: SchedulingError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = error_response(exc.status_code, "HTTP_EXCEPTION", str(exc.detail))
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return error_response(400, "VALIDATION_ERROR", "Invalid request data", errors)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(SchedulingError, scheduling_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
