import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from authcore.domain.errors import (
    AuthenticationError,
    DependencyUnavailable,
    EnrollmentStateError,
    LockedOut,
)

logger = logging.getLogger(__name__)

NOT_AUTHORIZED = {"detail": "not authorized"}


async def authentication_error_handler(request: Request, exc: AuthenticationError):
    # reason stays server-side
    logger.info(
        "request not authorized",
        extra={"path": request.url.path, "reason": exc.reason},
    )
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=NOT_AUTHORIZED,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def locked_out_handler(request: Request, exc: LockedOut):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=NOT_AUTHORIZED,
        headers={"WWW-Authenticate": "Bearer", "Retry-After": str(exc.retry_after)},
    )


async def enrollment_state_handler(request: Request, exc: EnrollmentStateError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)}
    )


async def dependency_unavailable_handler(request: Request, exc: DependencyUnavailable):
    logger.error(
        "dependency unavailable", extra={"path": request.url.path, "error": str(exc)}
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "service temporarily unavailable"},
        headers={"Retry-After": "1"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(LockedOut, locked_out_handler)
    app.add_exception_handler(EnrollmentStateError, enrollment_state_handler)
    app.add_exception_handler(DependencyUnavailable, dependency_unavailable_handler)
