"""Sales FastAPI application.

Web server that processes order fulfillment commands synchronously via HTTP.
Each request under /orders is wrapped in the sales domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sales.domain import sales
from sales.utils.logging import add_context, clear_context, configure_logging

configure_logging()
sales.init()

_DOMAIN_PREFIXES = ("/orders",)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Sales Fulfillment API",
    description="Sales order fulfillment: dispatch, delivery and stock returns",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the sales domain context for order requests."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        clear_context()
        add_context(
            method=request.method,
            path=request.url.path,
            actor_id=request.headers.get("x-actor-id"),
        )
        with sales.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from sales.api import order_router, register_error_handlers  # noqa: E402

app.include_router(order_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "sales": {"name": sales.name},
            },
        }
    )
