import logging
import uuid

from fastapi import FastAPI, Request

from app.api.discovery import public_router as discovery_public_router
from app.api.discovery import router as discovery_router
from app.api.fleet import router as fleet_router
from app.api.sessions import router as sessions_router
from app.api.subscribers import router as subscribers_router
from app.errors import register_error_handlers
from app.logging import configure_logging

REQUEST_ID_HEADER = "X-Request-ID"

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="dartbit bridge API")
register_error_handlers(app)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _include_api_router(router):
    app.include_router(router, prefix="/api")


_include_api_router(fleet_router)
_include_api_router(sessions_router)
_include_api_router(subscribers_router)
_include_api_router(discovery_router)

app.include_router(discovery_public_router)


@app.get("/api/health")
def health_check():
    return {"success": True}
