from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


DEFAULT_VIOLATION_TYPE = "all"
SORT_KEYS = ("date", "confidence", "status")
SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class Violation:
    type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisRecord:
    id: str
    timestamp: Optional[datetime]
    type: Optional[str] = None
    confidence: Optional[float] = None
    status: Optional[str] = None
    violations: List[Violation] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Statistics:
    total_analyses: int = 0
    violations_detected: int = 0
    average_confidence: float = 0
    analysis_types: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Filters:
    # date bounds hold the raw value when it could not be parsed
    date_from: Optional[Any] = None
    date_to: Optional[Any] = None
    violation_type: str = DEFAULT_VIOLATION_TYPE
    sort_by: str = "date"
    sort_order: str = "desc"


@dataclass(frozen=True)
class StoreState:
    analysis_history: List[AnalysisRecord] = field(default_factory=list)
    statistics: Statistics = field(default_factory=Statistics)
    filters: Filters = field(default_factory=Filters)
    selected_analysis: Optional[AnalysisRecord] = None
    is_loading: bool = False
    error: Optional[Any] = None
