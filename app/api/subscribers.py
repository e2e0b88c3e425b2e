"""Client and plan records, pushed to the fleet on save."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_link_factory
from app.schemas.subscriber import (
    ClientRead,
    ClientUpsert,
    PlanRead,
    PlanUpsert,
    SyncReport,
)
from app.services.routeros_link import LinkFactory
from app.services.subscriber_sync import SubscriberSync

router = APIRouter(tags=["subscribers"])


@router.get("/clients", response_model=list[ClientRead])
def list_clients(db: Session = Depends(get_db)):
    return SubscriberSync.list_clients(db)


@router.post("/clients", response_model=SyncReport)
async def save_client(
    payload: ClientUpsert,
    db: Session = Depends(get_db),
    link_factory: LinkFactory = Depends(get_link_factory),
):
    return await SubscriberSync.save_client(db, payload, link_factory)


@router.get("/plans", response_model=list[PlanRead])
def list_plans(db: Session = Depends(get_db)):
    return SubscriberSync.list_plans(db)


@router.post("/plans", response_model=SyncReport)
async def save_plan(
    payload: PlanUpsert,
    db: Session = Depends(get_db),
    link_factory: LinkFactory = Depends(get_link_factory),
):
    return await SubscriberSync.save_plan(db, payload, link_factory)
