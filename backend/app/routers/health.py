import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.common import ok, meta_now

router = APIRouter(prefix="/api/health", tags=["health"])
logger = logging.getLogger(__name__)

@router.get("")
def healthcheck(db: Session = Depends(get_db)):
    # the price and prediction tables live in the database; without it nothing can be validated
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("health: database ping failed")
        database = "unavailable"
    return ok(
        data={"status": "ok" if database == "ok" else "degraded", "database": database},
        meta=meta_now()
    )
