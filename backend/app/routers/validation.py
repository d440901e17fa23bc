# app/routers/validation.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.observability.logging import bind_validation_context
from app.schemas.common import fail, meta_now, ok
from app.schemas.validation import BatchValidationIn, ModeLiteral
from app.services.export import comparisons_to_csv
from app.services.validation import ValidationReport, run_batch_validation, run_validation

router = APIRouter(prefix="/api/validation", tags=["validation"])


def _run_single(
    db: Session,
    sku_id: str,
    prediction_date: date,
    prediction_step: Optional[int],
    probability_threshold: Optional[float],
    change_threshold: Optional[float],
    mode: str,
) -> ValidationReport:
    bind_validation_context(sku_id=sku_id, prediction_date=prediction_date)
    return run_validation(
        db,
        sku_id=sku_id,
        prediction_date=prediction_date,
        prediction_step=prediction_step,
        probability_threshold=probability_threshold,
        change_threshold=change_threshold,
        mode=mode,
    )


# ---------------------------------------------------------------------------
# /api/validation/single  -> enveloped report for one SKU
# ---------------------------------------------------------------------------
@router.get("/single")
def validate_single(
    sku_id: str = Query(..., min_length=1),
    prediction_date: date = Query(..., description="Day the forecast was issued"),
    prediction_step: Optional[int] = Query(None, description="Forecast horizon in days"),
    probability_threshold: Optional[float] = Query(None, description="Y; default from settings"),
    change_threshold: Optional[float] = Query(None, description="X; default from settings"),
    mode: ModeLiteral = Query("issued"),
    db: Session = Depends(get_db),
):
    """
    Predicted-vs-actual comparison records and accuracy for one SKU.

    Responds NO_PREDICTIONS when the model has no rows for the query and
    NO_PRICE_HISTORY when there is nothing to compare the forecast against.
    """
    report = _run_single(db, sku_id, prediction_date, prediction_step, probability_threshold, change_threshold, mode)
    meta = meta_now(
        sku_id=report.sku_id,
        prediction_date=prediction_date,
        prediction_step=report.prediction_step,
        probability_threshold=report.probability_threshold,
        change_threshold=report.change_threshold,
        mode=report.mode,
    )
    if report.prediction_rows == 0:
        return fail(
            code="NO_PREDICTIONS",
            message=f"No predictions for {report.sku_id} on {prediction_date.isoformat()}",
            status_code=status.HTTP_404_NOT_FOUND,
            meta=meta,
        )
    if not report.recent_prices:
        return fail(
            code="NO_PRICE_HISTORY",
            message=f"No historical prices for {report.sku_id} before {prediction_date.isoformat()}",
            status_code=status.HTTP_404_NOT_FOUND,
            meta=meta,
        )
    return ok(data=report.to_dict(), meta=meta)


# ---------------------------------------------------------------------------
# /api/validation/batch  -> enveloped per-SKU accuracy ranking
# ---------------------------------------------------------------------------
@router.post("/batch")
def validate_batch(body: BatchValidationIn, db: Session = Depends(get_db)):
    bind_validation_context(prediction_date=body.prediction_date)
    report = run_batch_validation(
        db,
        sku_ids=body.sku_ids,
        prediction_date=body.prediction_date,
        prediction_step=body.prediction_step,
        probability_threshold=body.probability_threshold,
        change_threshold=body.change_threshold,
        mode=body.mode,
    )
    return ok(
        data=report.to_dict(),
        meta=meta_now(
            prediction_date=body.prediction_date,
            prediction_step=report.prediction_step,
            probability_threshold=report.probability_threshold,
            change_threshold=report.change_threshold,
            mode=report.mode,
            count=len(report.outcomes),
        ),
    )


# ---------------------------------------------------------------------------
# /api/validation/export/csv  -> comparison table download
# ---------------------------------------------------------------------------
@router.get("/export/csv", response_class=Response)
def export_validation_csv(
    sku_id: str = Query(..., min_length=1),
    prediction_date: date = Query(...),
    prediction_step: Optional[int] = Query(None),
    probability_threshold: Optional[float] = Query(None),
    change_threshold: Optional[float] = Query(None),
    mode: ModeLiteral = Query("issued"),
    db: Session = Depends(get_db),
) -> Response:
    report = _run_single(db, sku_id, prediction_date, prediction_step, probability_threshold, change_threshold, mode)
    filename = f"validation_{report.sku_id}_{prediction_date.isoformat()}_{report.prediction_step}d.csv"
    return Response(
        content=comparisons_to_csv(report.comparisons),
        status_code=status.HTTP_200_OK,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
