from datetime import datetime, timedelta, timezone

import pytest

from analysis_store.application.services import analysis_store as store_module
from analysis_store.application.services.analysis_store import AnalysisStore


START = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(monkeypatch):
    """Each call to now() returns the next minute after START."""
    ticks = (START + timedelta(minutes=i) for i in range(1000))

    class FakeDatetime(datetime):
        @classmethod
        def now(cls, tz=None):
            return next(ticks)

    monkeypatch.setattr(store_module, "datetime", FakeDatetime)


@pytest.fixture
def store(clock):
    return AnalysisStore()


def ids(records):
    return [r.id for r in records]


def test_sorting_scenario(store):
    first = store.add_analysis({"confidence": 0.9, "status": "pass"})
    second = store.add_analysis({"confidence": 0.4, "status": "fail"})

    store.set_filters({"sortBy": "date", "sortOrder": "asc"})
    assert ids(store.get_filtered_history()) == [first.id, second.id]

    store.set_filters({"sortBy": "confidence", "sortOrder": "desc"})
    assert ids(store.get_filtered_history()) == [first.id, second.id]

    store.set_filters({"sortBy": "status", "sortOrder": "asc"})
    assert ids(store.get_filtered_history()) == [second.id, first.id]


def test_default_filters_return_newest_first(store):
    a = store.add_analysis({})
    b = store.add_analysis({})
    c = store.add_analysis({})
    assert ids(store.get_filtered_history()) == [c.id, b.id, a.id]


def test_unknown_sort_key_falls_back_to_date(store):
    a = store.add_analysis({"confidence": 0.9})
    b = store.add_analysis({"confidence": 0.1})
    store.set_filters({"sortBy": "size", "sortOrder": "asc"})
    assert ids(store.get_filtered_history()) == [a.id, b.id]


def test_missing_confidence_and_status_sort_as_empty(store):
    none = store.add_analysis({})
    low = store.add_analysis({"confidence": 0.2, "status": "b"})
    high = store.add_analysis({"confidence": 0.7, "status": "a"})

    store.set_filters({"sortBy": "confidence", "sortOrder": "asc"})
    assert ids(store.get_filtered_history()) == [none.id, low.id, high.id]

    store.set_filters({"sortBy": "status", "sortOrder": "asc"})
    assert ids(store.get_filtered_history()) == [none.id, high.id, low.id]


def test_status_sort_ignores_case(store):
    apple = store.add_analysis({"status": "apple"})
    banana = store.add_analysis({"status": "Banana"})
    cherry = store.add_analysis({"status": "cherry"})

    store.set_filters({"sortBy": "status", "sortOrder": "asc"})
    assert ids(store.get_filtered_history()) == [apple.id, banana.id, cherry.id]

    store.set_filters({"sortOrder": "desc"})
    assert ids(store.get_filtered_history()) == [cherry.id, banana.id, apple.id]


def test_equal_keys_break_ties_by_id(store):
    records = [store.add_analysis({"confidence": 0.5}) for _ in range(5)]
    store.set_filters({"sortBy": "confidence", "sortOrder": "asc"})
    assert ids(store.get_filtered_history()) == sorted(r.id for r in records)
    store.set_filters({"sortOrder": "desc"})
    assert ids(store.get_filtered_history()) == sorted((r.id for r in records), reverse=True)


def test_date_bounds_are_inclusive(store):
    records = [store.add_analysis({}) for _ in range(5)]
    store.set_filters({
        "dateFrom": (START + timedelta(minutes=1)).isoformat(),
        "dateTo": START + timedelta(minutes=3),
        "sortOrder": "asc",
    })
    assert ids(store.get_filtered_history()) == ids(records[1:4])


def test_date_bound_with_z_suffix(store):
    records = [store.add_analysis({}) for _ in range(3)]
    store.set_filters({"dateFrom": "2024-03-01T09:02:00Z"})
    assert ids(store.get_filtered_history()) == [records[2].id]


def test_unparseable_bound_matches_nothing(store):
    store.add_analysis({})
    store.set_filters({"dateFrom": "not a date"})
    assert store.get_filtered_history() == []
    assert store.get_state().filters.date_from == "not a date"

    store.set_filters({"dateFrom": None})
    assert len(store.get_filtered_history()) == 1


def test_violation_type_filter(store):
    pii = store.add_analysis({"violations": [{"type": "pii"}, {"type": "secret"}]})
    store.add_analysis({"violations": [{"type": "secret"}]})
    store.add_analysis({})

    store.set_filters({"violationType": "pii"})
    assert ids(store.get_filtered_history()) == [pii.id]

    store.set_filters({"violationType": "license"})
    assert store.get_filtered_history() == []

    store.set_filters({"violationType": None})
    assert store.get_state().filters.violation_type == "all"
    assert len(store.get_filtered_history()) == 3


def test_filtering_does_not_mutate_history(store):
    a = store.add_analysis({"confidence": 0.1})
    b = store.add_analysis({"confidence": 0.9})
    store.set_filters({"sortBy": "confidence", "sortOrder": "asc"})
    store.get_filtered_history()
    assert ids(store.get_state().analysis_history) == [b.id, a.id]


def test_recent_by_type_and_lookup(store):
    records = [store.add_analysis({"type": "scan" if i % 2 else "audit"}) for i in range(12)]
    newest_first = list(reversed(records))

    assert ids(store.get_recent_analyses()) == ids(newest_first[:10])
    assert ids(store.get_recent_analyses(3)) == ids(newest_first[:3])
    assert ids(store.get_analysis_by_type("scan")) == ids(r for r in newest_first if r.type == "scan")
    assert store.get_analysis_by_type("missing") == []
    assert store.get_analysis_by_id(records[4].id) == records[4]
    assert store.get_analysis_by_id("missing") is None


def test_violation_summary(store):
    store.add_analysis({"violations": [{"type": "pii"}, {"type": "pii"}, {"type": "secret"}]})
    store.add_analysis({"violations": [{"type": "secret"}, {"severity": "low"}]})
    store.add_analysis({})
    assert store.get_violation_summary() == {"pii": 2, "secret": 2}
