"""LinenLoop FastAPI application.

Delivery web server that processes commands synchronously via HTTP. Every
request runs inside the delivery domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - default      → event_processing = "sync"  (board projector fires in UoW)
#   - "production" → event_processing = "async" (board projector fires via Engine)
from delivery.domain import delivery  # noqa: E402
from delivery.utils.logging import clear_context, configure_logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

configure_logging()
delivery.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="LinenLoop API",
    description="Linen delivery and dirty-linen pickup reconciliation",
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
    """Push the delivery domain context for each request."""
    if request.url.path.startswith(("/orders", "/couriers")):
        with delivery.domain_context():
            try:
                return await call_next(request)
            finally:
                clear_context()
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers and error mapping
# ---------------------------------------------------------------------------
from delivery.api import courier_router, order_router, register_conflict_handler  # noqa: E402

app.include_router(order_router)
app.include_router(courier_router)
register_exception_handlers(app)
register_conflict_handler(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"delivery": {"name": delivery.name}},
        }
    )
