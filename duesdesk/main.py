import logging
import uuid
from time import perf_counter

from fastapi import Depends, FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from duesdesk.api.deps import require_user_auth
from duesdesk.api.due_types import router as due_types_router
from duesdesk.api.dues import router as dues_router
from duesdesk.api.payments import router as payments_router
from duesdesk.api.pharmacies import router as pharmacies_router
from duesdesk.errors import register_error_handlers
from duesdesk.logging import configure_logging
from duesdesk.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY
from duesdesk.services.object_storage import ensure_storage_bucket

app = FastAPI(title="duesdesk API")
logger = logging.getLogger(__name__)

configure_logging()
register_error_handlers(app)


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    start = perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        labels = {
            "method": request.method,
            "path": _route_path(request),
            "status": str(status_code),
        }
        REQUEST_COUNT.labels(**labels).inc()
        REQUEST_LATENCY.labels(**labels).observe(perf_counter() - start)
        if status_code >= 500:
            REQUEST_ERRORS.labels(**labels).inc()
    response.headers["x-request-id"] = request_id
    return response


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(dues_router, dependencies=[Depends(require_user_auth)])
_include_api_router(due_types_router, dependencies=[Depends(require_user_auth)])
_include_api_router(payments_router, dependencies=[Depends(require_user_auth)])
_include_api_router(pharmacies_router, dependencies=[Depends(require_user_auth)])


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.on_event("startup")
def _ensure_receipt_bucket():
    try:
        ensure_storage_bucket()
    except Exception:
        logger.exception("Failed to ensure storage bucket during startup")
