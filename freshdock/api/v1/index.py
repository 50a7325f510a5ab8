from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, text
from loguru import logger

from freshdock.core.config import settings
from freshdock.core.realtime import broker
from freshdock.db.core import get_session

router = APIRouter()


@router.get("/", status_code=status.HTTP_200_OK)
def index():
    return {"status": "running", "app": settings.app_name}


@router.get("/readiness", status_code=status.HTTP_200_OK)
def readiness_check(session: Session = Depends(get_session)):
    try:
        session.exec(text("SELECT 1"))
    except Exception:
        logger.exception("Database readiness check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not ready"
        )

    return {
        "status": "ready",
        "database": "online",
        "live_streams": broker.active_streams(),
    }
