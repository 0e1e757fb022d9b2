import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import HTTPException

from repair_booking.schemas.common import APIResponse
from repair_booking.core.error_codes import ErrorCode

from repair_booking.core.domain_exceptions import DomainException, InvalidConfiguration

logger = logging.getLogger(__name__)


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse.fail(ErrorCode.VALIDATION_ERROR.value, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def domain_exception_handler(request: Request, exc: DomainException):
    if isinstance(exc, InvalidConfiguration):
        # Pricing bugs belong to the shop's configuration, not the customer.
        logger.error(
            "Invalid shop configuration on %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
        )
    elif exc.status_code == 409:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code.value)

    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse.fail(exc.code.value, exc.message),
    )
