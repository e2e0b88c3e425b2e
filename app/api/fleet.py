"""Router fleet endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_link_factory
from app.schemas.fleet import (
    NodeRebootResult,
    OperationResult,
    RouterNodeRead,
    RouterNodeWrite,
)
from app.services.fleet import RouterNodes
from app.services.routeros_link import LinkFactory

router = APIRouter(prefix="/routers", tags=["routers"])


@router.get("", response_model=list[RouterNodeRead])
async def list_routers(
    db: Session = Depends(get_db),
    link_factory: LinkFactory = Depends(get_link_factory),
):
    """Poll every router and return the refreshed fleet."""
    return await RouterNodes.refresh_all(db, link_factory)


@router.get("/stored", response_model=list[RouterNodeRead])
def list_stored_routers(db: Session = Depends(get_db)):
    """Return the fleet as last recorded, without contacting any router."""
    return RouterNodes.list(db)


@router.post("", response_model=list[RouterNodeRead])
def replace_routers(payload: list[RouterNodeWrite], db: Session = Depends(get_db)):
    return RouterNodes.replace_all(db, payload)


@router.delete("/{node_id}", response_model=OperationResult)
def delete_router(node_id: str, db: Session = Depends(get_db)):
    RouterNodes.delete(db, node_id)
    return OperationResult(detail=f"Router {node_id} removed")


@router.post("/{node_id}/reboot", response_model=NodeRebootResult)
def reboot_router(
    node_id: str,
    db: Session = Depends(get_db),
    link_factory: LinkFactory = Depends(get_link_factory),
):
    return RouterNodes.reboot(db, node_id, link_factory)
