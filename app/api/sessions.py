from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_link_factory, get_throughput_engine
from app.schemas.fleet import SessionRead
from app.services.routeros_link import LinkFactory
from app.services.sessions import collect_sessions
from app.services.throughput import ThroughputRateEngine

router = APIRouter(tags=["sessions"])


@router.get("/mikrotik/active-sessions", response_model=list[SessionRead])
async def list_active_sessions(
    db: Session = Depends(get_db),
    engine: ThroughputRateEngine = Depends(get_throughput_engine),
    link_factory: LinkFactory = Depends(get_link_factory),
):
    """Live sessions across all ONLINE routers, with download/upload bitrate."""
    return await collect_sessions(db, engine, link_factory)
