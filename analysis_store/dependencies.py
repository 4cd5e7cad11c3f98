from fastapi import HTTPException, Request

from .application.services.analysis_store import AnalysisStore


def get_store(request: Request) -> AnalysisStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Analysis store is not initialized")
    return store
