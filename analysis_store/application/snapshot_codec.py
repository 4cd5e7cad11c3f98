"""Conversion between store state and the JSON-able snapshot payload.

The payload keeps the camelCase field names used by the UI clients so a
snapshot written by one consumer can be read by any other.
"""
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from .state import (
    DEFAULT_VIOLATION_TYPE,
    AnalysisRecord,
    Filters,
    Statistics,
    StoreState,
    Violation,
)


RECORD_FIELDS = ("type", "confidence", "status", "violations")
PROTECTED_FIELDS = ("id", "timestamp")

_FILTER_KEYS = {
    "dateFrom": "date_from",
    "dateTo": "date_to",
    "violationType": "violation_type",
    "sortBy": "sort_by",
    "sortOrder": "sort_order",
}
_FILTER_WIRE_KEYS = {v: k for k, v in _FILTER_KEYS.items()}


def parse_instant(value: Any) -> datetime:
    """Parse a datetime or ISO-8601 string into an aware UTC datetime.

    Raises ValueError when the value cannot be interpreted as an instant.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not an instant: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_instant(value: Any) -> Optional[datetime]:
    try:
        return parse_instant(value)
    except (TypeError, ValueError):
        return None


def format_instant(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def violation_from_value(value: Any) -> Violation:
    if isinstance(value, Violation):
        return value
    if isinstance(value, Mapping):
        extra = {k: v for k, v in value.items() if k != "type"}
        return Violation(type=value.get("type"), extra=extra)
    return Violation(extra={"value": value})


def violation_to_dict(violation: Violation) -> Dict[str, Any]:
    data = dict(violation.extra)
    if violation.type is not None:
        data["type"] = violation.type
    return data


def split_record_fields(data: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split a caller mapping into known record fields and opaque extras.

    ``id`` and ``timestamp`` are dropped; the store owns them.
    """
    known: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in data.items():
        if key in PROTECTED_FIELDS:
            continue
        if key == "violations":
            known[key] = [violation_from_value(v) for v in (value or [])]
        elif key in RECORD_FIELDS:
            known[key] = value
        else:
            extra[key] = value
    return known, extra


def record_as_mapping(record: AnalysisRecord) -> Dict[str, Any]:
    """Flatten a record into a caller-style mapping (without id/timestamp)."""
    data = dict(record.extra)
    for name in RECORD_FIELDS:
        data[name] = getattr(record, name)
    return data


def record_to_dict(record: AnalysisRecord) -> Dict[str, Any]:
    data = dict(record.extra)
    data["id"] = record.id
    data["timestamp"] = format_instant(record.timestamp)
    if record.type is not None:
        data["type"] = record.type
    if record.confidence is not None:
        data["confidence"] = record.confidence
    if record.status is not None:
        data["status"] = record.status
    data["violations"] = [violation_to_dict(v) for v in record.violations]
    return data


def record_from_dict(data: Mapping[str, Any]) -> AnalysisRecord:
    known, extra = split_record_fields(data)
    return AnalysisRecord(
        id=str(data.get("id")),
        timestamp=coerce_instant(data.get("timestamp")),
        type=known.get("type"),
        confidence=known.get("confidence"),
        status=known.get("status"),
        violations=known.get("violations", []),
        extra=extra,
    )


def statistics_to_dict(statistics: Statistics) -> Dict[str, Any]:
    return {
        "totalAnalyses": statistics.total_analyses,
        "violationsDetected": statistics.violations_detected,
        "averageConfidence": statistics.average_confidence,
        "analysisTypes": dict(statistics.analysis_types),
    }


def statistics_from_dict(data: Mapping[str, Any]) -> Statistics:
    types = {k: int(v) for k, v in (data.get("analysisTypes") or {}).items() if v}
    return Statistics(
        total_analyses=int(data.get("totalAnalyses", 0) or 0),
        violations_detected=int(data.get("violationsDetected", 0) or 0),
        average_confidence=data.get("averageConfidence", 0) or 0,
        analysis_types=types,
    )


def normalize_filter_updates(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Map camelCase or snake_case filter keys onto ``Filters`` attributes.

    Parseable date bounds become datetimes; unparseable ones are kept raw so
    the query path can treat them as never matching. Unknown keys are dropped.
    """
    normalized: Dict[str, Any] = {}
    for key, value in updates.items():
        name = _FILTER_KEYS.get(key, key)
        if name not in _FILTER_WIRE_KEYS:
            continue
        if name in ("date_from", "date_to") and value not in (None, ""):
            value = coerce_instant(value) or value
        elif name in ("date_from", "date_to"):
            value = None
        elif name == "violation_type" and value is None:
            value = DEFAULT_VIOLATION_TYPE
        normalized[name] = value
    return normalized


def filters_to_dict(filters: Filters) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for name, value in asdict(filters).items():
        if isinstance(value, datetime):
            value = format_instant(value)
        data[_FILTER_WIRE_KEYS[name]] = value
    return data


def filters_from_dict(data: Mapping[str, Any]) -> Filters:
    return Filters(**normalize_filter_updates(data))


def state_to_dict(state: StoreState) -> Dict[str, Any]:
    selected = state.selected_analysis
    return {
        "analysisHistory": [record_to_dict(r) for r in state.analysis_history],
        "statistics": statistics_to_dict(state.statistics),
        "filters": filters_to_dict(state.filters),
        "selectedAnalysis": record_to_dict(selected) if selected is not None else None,
        "isLoading": state.is_loading,
        "error": state.error,
    }


def state_from_dict(data: Mapping[str, Any], base: Optional[StoreState] = None) -> StoreState:
    """Build a state from a payload, shallow-merging it over ``base``.

    Keys missing from the payload keep the value from ``base`` (defaults when
    no base is given).
    """
    state = base or StoreState()
    values: Dict[str, Any] = {}
    if "analysisHistory" in data:
        values["analysis_history"] = [record_from_dict(r) for r in data["analysisHistory"] or []]
    if "statistics" in data:
        values["statistics"] = statistics_from_dict(data["statistics"] or {})
    if "filters" in data:
        values["filters"] = filters_from_dict(data["filters"] or {})
    if "selectedAnalysis" in data:
        selected = data["selectedAnalysis"]
        values["selected_analysis"] = record_from_dict(selected) if selected else None
    if "isLoading" in data:
        values["is_loading"] = bool(data["isLoading"])
    if "error" in data:
        values["error"] = data["error"]
    return StoreState(
        analysis_history=values.get("analysis_history", state.analysis_history),
        statistics=values.get("statistics", state.statistics),
        filters=values.get("filters", state.filters),
        selected_analysis=values.get("selected_analysis", state.selected_analysis),
        is_loading=values.get("is_loading", state.is_loading),
        error=values.get("error", state.error),
    )
