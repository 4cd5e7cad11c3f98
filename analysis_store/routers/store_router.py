from fastapi import APIRouter, Depends, HTTPException
import logging

from ..application.services.analysis_store import AnalysisStore
from ..application.snapshot_codec import state_to_dict
from ..dependencies import get_store
from ..exceptions import create_success_response
from ..schemas.analysis.analysis import (
    ErrorRequest,
    FiltersUpdate,
    LoadingRequest,
    SelectionRequest,
    analysis_payload,
    filters_payload,
    statistics_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/store", tags=["Store"])


@router.get("/state")
def get_state(store: AnalysisStore = Depends(get_store)):
    return create_success_response(state_to_dict(store.get_state()))


@router.get("/statistics")
def get_statistics(store: AnalysisStore = Depends(get_store)):
    return create_success_response(statistics_payload(store.get_statistics()))


@router.post("/statistics/recompute")
def recompute_statistics(store: AnalysisStore = Depends(get_store)):
    statistics = store.recompute_statistics()
    logger.info("Statistics rebuilt from analysis history")
    return create_success_response(statistics_payload(statistics))


@router.get("/violations/summary")
def get_violation_summary(store: AnalysisStore = Depends(get_store)):
    return create_success_response(store.get_violation_summary())


@router.get("/filters")
def get_filters(store: AnalysisStore = Depends(get_store)):
    return create_success_response(filters_payload(store.get_state().filters))


@router.patch("/filters")
def set_filters(body: FiltersUpdate, store: AnalysisStore = Depends(get_store)):
    store.set_filters(body.model_dump(exclude_unset=True, mode="json"))
    return create_success_response(filters_payload(store.get_state().filters))


@router.post("/filters/reset")
def reset_filters(store: AnalysisStore = Depends(get_store)):
    store.reset_filters()
    return create_success_response(filters_payload(store.get_state().filters))


@router.get("/selection")
def get_selection(store: AnalysisStore = Depends(get_store)):
    selected = store.get_state().selected_analysis
    return create_success_response(analysis_payload(selected) if selected else None)


@router.put("/selection")
def set_selection(body: SelectionRequest, store: AnalysisStore = Depends(get_store)):
    if body.id is None:
        store.clear_selected_analysis()
        return create_success_response(None)
    record = store.get_analysis_by_id(body.id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    store.set_selected_analysis(record)
    return create_success_response(analysis_payload(record))


@router.delete("/selection")
def clear_selection(store: AnalysisStore = Depends(get_store)):
    store.clear_selected_analysis()
    return create_success_response(None)


@router.put("/loading")
def set_loading(body: LoadingRequest, store: AnalysisStore = Depends(get_store)):
    store.set_loading(body.isLoading)
    return create_success_response({"isLoading": store.get_state().is_loading})


@router.put("/error")
def set_error(body: ErrorRequest, store: AnalysisStore = Depends(get_store)):
    store.set_error(body.error)
    return create_success_response({"error": store.get_state().error})


@router.delete("/error")
def clear_error(store: AnalysisStore = Depends(get_store)):
    store.clear_error()
    return create_success_response({"error": None})
