from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional
import logging

from ..application.services.analysis_store import AnalysisStore
from ..dependencies import get_store
from ..exceptions import create_success_response
from ..schemas.analysis.analysis import AnalysisCreate, AnalysisUpdate, analysis_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyses", tags=["Analyses"])


@router.post("", status_code=201)
def add_analysis(body: AnalysisCreate, store: AnalysisStore = Depends(get_store)):
    record = store.add_analysis(body.model_dump(exclude_unset=True))
    logger.info(f"Stored analysis {record.id}")
    return create_success_response(analysis_payload(record))


@router.get("")
def get_filtered_history(store: AnalysisStore = Depends(get_store)):
    """History after applying the store's current filters and sort order."""
    records = store.get_filtered_history()
    return create_success_response([analysis_payload(r) for r in records])


@router.get("/recent")
def get_recent_analyses(
    request: Request,
    limit: Optional[int] = Query(default=None, ge=0),
    store: AnalysisStore = Depends(get_store),
):
    if limit is None:
        limit = request.app.state.settings.RECENT_ANALYSES_LIMIT
    records = store.get_recent_analyses(limit)
    return create_success_response([analysis_payload(r) for r in records])


@router.get("/by-type/{analysis_type}")
def get_analysis_by_type(analysis_type: str, store: AnalysisStore = Depends(get_store)):
    records = store.get_analysis_by_type(analysis_type)
    return create_success_response([analysis_payload(r) for r in records])


@router.get("/{analysis_id}")
def get_analysis(analysis_id: str, store: AnalysisStore = Depends(get_store)):
    record = store.get_analysis_by_id(analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return create_success_response(analysis_payload(record))


# Unknown ids are accepted by update/remove; both are idempotent no-ops in the store.
@router.patch("/{analysis_id}")
def update_analysis(analysis_id: str, body: AnalysisUpdate, store: AnalysisStore = Depends(get_store)):
    store.update_analysis(analysis_id, body.model_dump(exclude_unset=True))
    record = store.get_analysis_by_id(analysis_id)
    return create_success_response(analysis_payload(record) if record else None)


@router.delete("/{analysis_id}")
def remove_analysis(analysis_id: str, store: AnalysisStore = Depends(get_store)):
    store.remove_analysis(analysis_id)
    return create_success_response({"id": analysis_id})


@router.delete("")
def clear_history(store: AnalysisStore = Depends(get_store)):
    store.clear_history()
    return create_success_response({"message": "Analysis history cleared"})
