# analysis_store/schemas/analysis/analysis.py
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from enum import Enum

from ...application.snapshot_codec import (
    filters_to_dict,
    record_to_dict,
    statistics_to_dict,
)
from ...application.state import AnalysisRecord, Filters, Statistics

class SortBy(str, Enum):
    DATE = "date"
    CONFIDENCE = "confidence"
    STATUS = "status"

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

class ViolationIn(BaseModel):
    model_config = ConfigDict(extra="allow")
    type: Optional[str] = Field(None, description="Violation category used for summaries and filtering")

class AnalysisCreate(BaseModel):
    """Analysis payload as produced by the analysis engine; unknown fields pass through."""
    model_config = ConfigDict(extra="allow")
    type: Optional[str] = Field(None, description="Analysis category")
    confidence: Optional[float] = Field(None, description="Confidence score; values <= 0 are ignored for averaging")
    status: Optional[str] = None
    violations: List[ViolationIn] = Field(default_factory=list)

class AnalysisUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")
    type: Optional[str] = None
    confidence: Optional[float] = None
    status: Optional[str] = None
    violations: Optional[List[ViolationIn]] = None

class FiltersUpdate(BaseModel):
    dateFrom: Optional[datetime] = None
    dateTo: Optional[datetime] = None
    violationType: Optional[str] = None
    sortBy: Optional[SortBy] = None
    sortOrder: Optional[SortOrder] = None

class SelectionRequest(BaseModel):
    id: Optional[str] = Field(None, description="Analysis id to select; null clears the selection")

class LoadingRequest(BaseModel):
    isLoading: bool

class ErrorRequest(BaseModel):
    error: Optional[Any] = None

class StatisticsResponse(BaseModel):
    totalAnalyses: int
    violationsDetected: int
    averageConfidence: float
    analysisTypes: Dict[str, int] = Field(default_factory=dict)


def analysis_payload(record: AnalysisRecord) -> Dict[str, Any]:
    return record_to_dict(record)

def statistics_payload(statistics: Statistics) -> Dict[str, Any]:
    return StatisticsResponse(**statistics_to_dict(statistics)).model_dump()

def filters_payload(filters: Filters) -> Dict[str, Any]:
    return filters_to_dict(filters)
