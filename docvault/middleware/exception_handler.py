"""Exception handler for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse

from ..core.logging_config import mask_delivery_tokens
from ..exceptions import VaultException

logger = logging.getLogger(__name__)


async def vault_exception_handler(request: Request, exc: VaultException) -> JSONResponse:
    """Convert a VaultException into ``{error, message, details}`` JSON.

    Client errors log at WARNING, server-side failures at ERROR.
    """
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "%s: %s", exc.error_code.value, exc.message,
        extra={
            "error_code": exc.error_code.value,
            "path": mask_delivery_tokens(request.url.path),
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )
