import logging
import operator
import secrets
import string
import threading
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from ..ports.snapshot_repo import SnapshotRepository, StoreSnapshot
from ..snapshot_codec import (
    coerce_instant,
    normalize_filter_updates,
    record_as_mapping,
    record_from_dict,
    split_record_fields,
    state_from_dict,
    state_to_dict,
)
from ..state import (
    DEFAULT_VIOLATION_TYPE,
    AnalysisRecord,
    Filters,
    Statistics,
    StoreState,
)
from ...exceptions import PersistError

logger = logging.getLogger(__name__)

STORE_NAME = "analysis-store"
STORE_VERSION = 1

Listener = Callable[[StoreState, StoreState], None]
Migrate = Callable[[Dict[str, Any], int], Dict[str, Any]]
AnalysisInput = Union[Mapping[str, Any], AnalysisRecord]

_ID_ALPHABET = string.digits + string.ascii_lowercase
_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def generate_analysis_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"analysis_{int(time.time() * 1000)}_{suffix}"


def _is_positive(value: Any) -> bool:
    try:
        return value is not None and value > 0
    except TypeError:
        return False


def _as_number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0


def average_confidence(records: Iterable[AnalysisRecord]) -> float:
    """Mean of the positive confidences, 0 when there are none."""
    values = [r.confidence for r in records if _is_positive(r.confidence)]
    if not values:
        return 0
    return sum(values) / len(values)


def build_statistics(records: List[AnalysisRecord]) -> Statistics:
    types: Dict[str, int] = {}
    for record in records:
        if record.type:
            types[record.type] = types.get(record.type, 0) + 1
    return Statistics(
        total_analyses=len(records),
        violations_detected=sum(len(r.violations) for r in records),
        average_confidence=average_confidence(records),
        analysis_types=types,
    )


def _within(timestamp: Optional[datetime], bound: Any, compare) -> bool:
    if timestamp is None:
        return False
    instant = coerce_instant(bound)
    if instant is None:
        return False
    return compare(timestamp, instant)


def sort_records(records: List[AnalysisRecord], sort_by: str, sort_order: str) -> List[AnalysisRecord]:
    """Stable sort with the record id as tie-break; anything but 'asc' is descending."""
    if sort_by == "confidence":
        key = lambda r: (_as_number(r.confidence), r.id)
    elif sort_by == "status":
        key = lambda r: (str(r.status or "").casefold(), str(r.status or ""), r.id)
    else:
        key = lambda r: (r.timestamp or _EARLIEST, r.id)
    return sorted(records, key=key, reverse=sort_order != "asc")


class AnalysisStore:
    """History of analyses with incrementally maintained statistics.

    Every action replaces the immutable ``StoreState`` in one step and then
    writes a snapshot through ``repository``. Persistence is best effort: a
    failed save lands in the ``error`` slot and never escapes the action.
    """

    def __init__(
        self,
        repository: Optional[SnapshotRepository] = None,
        name: str = STORE_NAME,
        version: int = STORE_VERSION,
        migrate: Optional[Migrate] = None,
        recompute_on_update: bool = False,
        skip_hydration: bool = False,
    ) -> None:
        self.repository = repository
        self.name = name
        self.version = version
        self.migrate = migrate
        self.recompute_on_update = recompute_on_update
        self._state = StoreState()
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._hydrated = False
        if not skip_hydration:
            self.rehydrate()

    # ------------------------
    # State plumbing
    # ------------------------
    def get_state(self) -> StoreState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, new_state: StoreState, old_state: StoreState) -> None:
        for listener in list(self._listeners):
            try:
                listener(new_state, old_state)
            except Exception:
                logger.exception("Store listener failed")

    def _commit(self, new_state: StoreState, persist: bool = True) -> None:
        old_state = self._state
        self._state = new_state
        if persist:
            self._persist(new_state)
        self._notify(self._state, old_state)

    def _persist(self, state: StoreState) -> bool:
        if self.repository is None:
            return True
        try:
            snapshot = StoreSnapshot(name=self.name, version=self.version, state=state_to_dict(state))
            self.repository.save(snapshot)
        except PersistError as e:
            logger.warning(f"Failed to persist store '{self.name}': {e}")
            self._state = replace(self._state, error=str(e))
            return False
        except Exception as e:
            logger.exception(f"Snapshot repository failed for store '{self.name}'")
            self._state = replace(self._state, error=str(e) or e.__class__.__name__)
            return False
        return True

    def _find(self, state: StoreState, analysis_id: str) -> Optional[int]:
        for index, record in enumerate(state.analysis_history):
            if record.id == analysis_id:
                return index
        return None

    def _new_id(self, state: StoreState) -> str:
        existing = {r.id for r in state.analysis_history}
        analysis_id = generate_analysis_id()
        while analysis_id in existing:
            analysis_id = generate_analysis_id()
        return analysis_id

    # ------------------------
    # Analysis history actions
    # ------------------------
    def add_analysis(self, analysis: AnalysisInput) -> AnalysisRecord:
        if isinstance(analysis, AnalysisRecord):
            analysis = record_as_mapping(analysis)
        fields, extra = split_record_fields(analysis)
        with self._lock:
            state = self._state
            record = AnalysisRecord(
                id=self._new_id(state),
                timestamp=datetime.now(timezone.utc),
                type=fields.get("type"),
                confidence=fields.get("confidence"),
                status=fields.get("status"),
                violations=fields.get("violations", []),
                extra=extra,
            )
            history = [record] + state.analysis_history

            stats = state.statistics
            types = dict(stats.analysis_types)
            if record.type:
                types[record.type] = types.get(record.type, 0) + 1
            average = stats.average_confidence
            if record.confidence is not None:
                average = average_confidence(history)

            statistics = Statistics(
                total_analyses=stats.total_analyses + 1,
                violations_detected=stats.violations_detected + len(record.violations),
                average_confidence=average,
                analysis_types=types,
            )
            self._commit(replace(state, analysis_history=history, statistics=statistics))
        logger.debug(f"Added analysis {record.id} (type={record.type})")
        return record

    def remove_analysis(self, analysis_id: str) -> None:
        with self._lock:
            state = self._state
            index = self._find(state, analysis_id)
            if index is None:
                logger.debug(f"Remove ignored, analysis {analysis_id} not found")
                return
            record = state.analysis_history[index]
            history = [r for r in state.analysis_history if r.id != analysis_id]

            stats = state.statistics
            types = dict(stats.analysis_types)
            if record.type and types.get(record.type):
                remaining = max(0, types[record.type] - 1)
                if remaining:
                    types[record.type] = remaining
                else:
                    del types[record.type]

            statistics = Statistics(
                total_analyses=max(0, stats.total_analyses - 1),
                violations_detected=max(0, stats.violations_detected - len(record.violations)),
                average_confidence=average_confidence(history),
                analysis_types=types,
            )
            selected = state.selected_analysis
            if selected is not None and selected.id == analysis_id:
                selected = None
            self._commit(replace(
                state,
                analysis_history=history,
                statistics=statistics,
                selected_analysis=selected,
            ))
        logger.debug(f"Removed analysis {analysis_id}")

    def update_analysis(self, analysis_id: str, updates: Mapping[str, Any]) -> None:
        fields, extra = split_record_fields(updates)
        with self._lock:
            state = self._state
            index = self._find(state, analysis_id)
            if index is None:
                logger.debug(f"Update ignored, analysis {analysis_id} not found")
                return
            old = state.analysis_history[index]
            merged_extra = dict(old.extra)
            merged_extra.update(extra)
            updated = replace(old, extra=merged_extra, **fields)
            history = list(state.analysis_history)
            history[index] = updated

            statistics = state.statistics
            if "confidence" in fields and fields["confidence"] != old.confidence:
                statistics = replace(statistics, average_confidence=average_confidence(history))
            # counters only follow type/violations edits when explicitly enabled
            if self.recompute_on_update and ("type" in fields or "violations" in fields):
                statistics = build_statistics(history)

            selected = state.selected_analysis
            if selected is not None and selected.id == analysis_id:
                selected = updated
            self._commit(replace(
                state,
                analysis_history=history,
                statistics=statistics,
                selected_analysis=selected,
            ))
        logger.debug(f"Updated analysis {analysis_id}: {sorted(fields) + sorted(extra)}")

    def clear_history(self) -> None:
        with self._lock:
            self._commit(replace(
                self._state,
                analysis_history=[],
                statistics=Statistics(),
                selected_analysis=None,
            ))
        logger.info(f"Cleared analysis history for store '{self.name}'")

    def recompute_statistics(self) -> Statistics:
        with self._lock:
            statistics = build_statistics(self._state.analysis_history)
            self._commit(replace(self._state, statistics=statistics))
        return statistics

    # ------------------------
    # Filtering and sorting
    # ------------------------
    def set_filters(self, filters: Mapping[str, Any]) -> None:
        updates = normalize_filter_updates(filters)
        with self._lock:
            self._commit(replace(self._state, filters=replace(self._state.filters, **updates)))

    def reset_filters(self) -> None:
        with self._lock:
            self._commit(replace(self._state, filters=Filters()))

    # ------------------------
    # Selection and UI state
    # ------------------------
    def set_selected_analysis(self, analysis: Optional[AnalysisInput]) -> None:
        if analysis is not None and not isinstance(analysis, AnalysisRecord):
            analysis = record_from_dict(analysis)
        with self._lock:
            self._commit(replace(self._state, selected_analysis=analysis))

    def clear_selected_analysis(self) -> None:
        self.set_selected_analysis(None)

    def set_loading(self, is_loading: bool) -> None:
        with self._lock:
            self._commit(replace(self._state, is_loading=is_loading))

    def set_error(self, error: Any) -> None:
        with self._lock:
            self._commit(replace(self._state, error=error))

    def clear_error(self) -> None:
        self.set_error(None)

    # ------------------------
    # Getters
    # ------------------------
    def get_filtered_history(self) -> List[AnalysisRecord]:
        state = self._state
        filters = state.filters
        filtered = list(state.analysis_history)

        if filters.date_from:
            filtered = [r for r in filtered if _within(r.timestamp, filters.date_from, operator.ge)]
        if filters.date_to:
            filtered = [r for r in filtered if _within(r.timestamp, filters.date_to, operator.le)]

        if filters.violation_type != DEFAULT_VIOLATION_TYPE:
            filtered = [
                r for r in filtered
                if any(v.type == filters.violation_type for v in r.violations)
            ]

        return sort_records(filtered, filters.sort_by, filters.sort_order)

    def get_statistics(self) -> Statistics:
        return self._state.statistics

    def get_analysis_by_id(self, analysis_id: str) -> Optional[AnalysisRecord]:
        state = self._state
        index = self._find(state, analysis_id)
        return state.analysis_history[index] if index is not None else None

    def get_analysis_by_type(self, analysis_type: str) -> List[AnalysisRecord]:
        return [r for r in self._state.analysis_history if r.type == analysis_type]

    def get_recent_analyses(self, limit: int = 10) -> List[AnalysisRecord]:
        return self._state.analysis_history[:limit]

    def get_violation_summary(self) -> Dict[str, int]:
        summary: Dict[str, int] = {}
        for record in self._state.analysis_history:
            for violation in record.violations:
                if violation.type is None:
                    continue
                summary[violation.type] = summary.get(violation.type, 0) + 1
        return summary

    # ------------------------
    # Snapshot persistence
    # ------------------------
    def has_hydrated(self) -> bool:
        return self._hydrated

    def rehydrate(self) -> bool:
        """Load the persisted snapshot and merge it over the current state.

        Returns True when a snapshot was applied. Missing, incompatible or
        unreadable snapshots leave the state untouched.
        """
        if self.repository is None:
            self._hydrated = True
            return False
        try:
            snapshot = self.repository.load(self.name)
        except Exception as e:
            logger.warning(f"Failed to load store '{self.name}': {e}")
            with self._lock:
                self._commit(replace(self._state, error=str(e)), persist=False)
            self._hydrated = True
            return False

        applied = False
        if snapshot is None:
            logger.info(f"No snapshot found for store '{self.name}', starting empty")
        else:
            payload = self._migrate(snapshot)
            if payload is not None:
                with self._lock:
                    try:
                        state = state_from_dict(payload, base=self._state)
                    except (AttributeError, KeyError, TypeError, ValueError) as e:
                        logger.warning(f"Discarding unreadable snapshot for store '{self.name}': {e}")
                    else:
                        self._commit(state, persist=False)
                        applied = True
                        logger.info(
                            f"Rehydrated store '{self.name}' with {len(state.analysis_history)} analyses"
                        )
        self._hydrated = True
        return applied

    def _migrate(self, snapshot: StoreSnapshot) -> Optional[Dict[str, Any]]:
        if snapshot.version == self.version:
            return snapshot.state
        if self.migrate is None:
            logger.warning(
                f"Discarding snapshot for store '{self.name}': version {snapshot.version} "
                f"does not match {self.version} and no migrate function was provided"
            )
            return None
        try:
            return self.migrate(dict(snapshot.state), snapshot.version)
        except Exception:
            logger.exception(f"Migration of store '{self.name}' from version {snapshot.version} failed")
            return None

    def flush(self) -> bool:
        with self._lock:
            old_state = self._state
            ok = self._persist(old_state)
            if not ok:
                self._notify(self._state, old_state)
        return ok

    def clear_storage(self) -> None:
        if self.repository is None:
            return
        try:
            self.repository.clear(self.name)
        except Exception as e:
            logger.warning(f"Failed to clear storage for store '{self.name}': {e}")
            with self._lock:
                self._commit(replace(self._state, error=str(e)), persist=False)
