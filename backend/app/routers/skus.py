from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.common import fail, meta_now, ok
from app.schemas.reconcile import points_to_dicts
from app.services.price_fetch import fetch_historical_prices, list_prediction_dates, list_sku_ids

router = APIRouter(prefix="/api/skus", tags=["skus"])

@router.get("")
def list_skus(db: Session = Depends(get_db)):
    skus = list_sku_ids(db)
    return ok(data=skus, meta=meta_now(count=len(skus)))

@router.get("/{sku_id}/prediction-dates")
def get_prediction_dates(
    sku_id: str,
    limit: Optional[int] = Query(10, ge=1, le=365),
    db: Session = Depends(get_db),
):
    dates = list_prediction_dates(db, sku_id, limit=limit)
    if not dates:
        return fail(code="NOT_FOUND", message=f"No predictions for SKU {sku_id}", status_code=404, meta=meta_now(sku_id=sku_id))
    return ok(data=[d.isoformat() for d in dates], meta=meta_now(sku_id=sku_id, limit=limit))

@router.get("/{sku_id}/prices")
def get_price_history(
    sku_id: str,
    as_of: date = Query(..., description="Prices strictly before this day"),
    db: Session = Depends(get_db),
):
    # recent window and the same season a year earlier, for the two price charts
    history = fetch_historical_prices(db, sku_id, as_of)
    return ok(
        data={
            "recent": points_to_dicts(history.recent),
            "last_year": points_to_dicts(history.last_year),
        },
        meta=meta_now(sku_id=sku_id, as_of=as_of),
    )
