"""HTTP mapping of the order workflow rejections.

Protean's own handlers are registered first; the handlers below take over
for the sales taxonomy. Starlette resolves handlers along the exception's
MRO, so subclasses get their own status codes.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from sales.errors import DependencyFailure, InvalidStateTransition, QuantityExceeded, Unauthorized


def _body(exc, **details):
    messages = getattr(exc, "messages", None) or {"_entity": [str(exc)]}
    return {"error": type(exc).__name__, "messages": messages, **details}


async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content=_body(exc))


async def _quantity_exceeded(request: Request, exc: QuantityExceeded):
    return JSONResponse(status_code=422, content=_body(exc, product_names=exc.product_names))


async def _unauthorized(request: Request, exc: Unauthorized):
    return JSONResponse(
        status_code=403,
        content=_body(exc, actor_role=exc.actor_role, required_roles=exc.required_roles),
    )


async def _invalid_state(request: Request, exc: InvalidStateTransition):
    return JSONResponse(
        status_code=409,
        content=_body(exc, current=exc.current, required=exc.required),
    )


async def _dependency_failure(request: Request, exc: DependencyFailure):
    return JSONResponse(
        status_code=502,
        content=_body(exc, dependency=exc.dependency, reason=exc.reason),
    )


async def _not_found(request: Request, exc: ObjectNotFoundError):
    return JSONResponse(status_code=404, content=_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(QuantityExceeded, _quantity_exceeded)
    app.add_exception_handler(Unauthorized, _unauthorized)
    app.add_exception_handler(InvalidStateTransition, _invalid_state)
    app.add_exception_handler(DependencyFailure, _dependency_failure)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
