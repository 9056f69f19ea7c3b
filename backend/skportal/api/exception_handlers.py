"""Map registration-core errors onto HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from skportal.core.exceptions import RegistrationError
from skportal.core.logging import get_logger

logger = get_logger(__name__)


async def handle_registration_error(request: Request, exc: RegistrationError) -> JSONResponse:
    """Typed business/transient errors carry their own status code and body."""
    if exc.status_code >= 500:
        logger.warning("registration_transient_failure", error=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistrationError, handle_registration_error)
