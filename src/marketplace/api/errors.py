"""HTTP mapping for the errors the reconciliation pipeline and domain raise."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.reconciliation.errors import ReconciliationError


async def reconciliation_error_handler(request: Request, exc: ReconciliationError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "payment_confirmation_id": exc.payment_confirmation_id},
    )


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.messages})


async def not_found_handler(request: Request, exc: ObjectNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReconciliationError, reconciliation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
