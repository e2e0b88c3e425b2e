"""
Discovery and provisioning endpoints.

``public_router`` serves ``/boot`` at the site root because routers fetch
it with a bare URL; everything else lives under ``/api``.
"""
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.fleet import OperationResult, RouterNodeRead
from app.schemas.provisioning import DiscoveryFinalize, DiscoveryRecordRead
from app.services.provisioning import (
    BootProfile,
    DiscoveryQueue,
    build_boot_script,
    loader_command,
)

router = APIRouter(tags=["discovery"])
public_router = APIRouter(tags=["provisioning"])


@router.get("/discovered", response_model=list[DiscoveryRecordRead])
def list_discovered(db: Session = Depends(get_db)):
    return DiscoveryQueue.list(db)


@router.get("/discovery/latest", response_model=DiscoveryRecordRead | None)
def latest_discovered(db: Session = Depends(get_db)):
    return DiscoveryQueue.latest(db)


@router.post("/discovery/clear", response_model=OperationResult)
def clear_discovered(db: Session = Depends(get_db)):
    count = DiscoveryQueue.clear(db)
    return OperationResult(detail=f"{count} records cleared")


@router.post("/discovery/{record_id}/finalize", response_model=RouterNodeRead)
def finalize_discovered(
    record_id: str,
    payload: DiscoveryFinalize,
    db: Session = Depends(get_db),
):
    return DiscoveryQueue.finalize(db, record_id, payload)


@router.get("/discovery/loader-command", response_model=dict)
def get_loader_command(
    server_host: str = Query(..., min_length=1, max_length=255),
    device_host: str | None = Query(None, max_length=255),
):
    return {"command": loader_command(server_host, device_host)}


@public_router.get("/boot", response_class=PlainTextResponse)
def boot_script(
    request: Request,
    ip: str | None = Query(None, max_length=255),
    db: Session = Depends(get_db),
):
    """Configuration script for a fresh router; also queues it for naming."""
    host = ip or (request.client.host if request.client else "unknown")
    DiscoveryQueue.record_checkin(db, host)
    server_host = request.url.hostname or "localhost"
    return PlainTextResponse(build_boot_script(BootProfile.from_settings(server_host)))
