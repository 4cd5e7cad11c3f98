from datetime import datetime, timezone

from analysis_store.application.ports.snapshot_repo import StoreSnapshot
from analysis_store.application.services.analysis_store import AnalysisStore
from analysis_store.application.snapshot_codec import state_from_dict, state_to_dict
from analysis_store.application.state import StoreState
from analysis_store.exceptions import PersistError
from analysis_store.infrastructure.persistence.file_snapshot_repo import FileSnapshotRepository
from analysis_store.infrastructure.persistence.memory_snapshot_repo import InMemorySnapshotRepository


class FailingRepo:
    def __init__(self, fail_load: bool = False):
        self.fail_load = fail_load
        self.attempts = 0

    def load(self, name):
        if self.fail_load:
            raise PersistError(name, "storage offline")
        return None

    def save(self, snapshot):
        self.attempts += 1
        raise PersistError(snapshot.name, "disk full")

    def clear(self, name):
        raise PersistError(name, "storage offline")


def populate(store):
    a = store.add_analysis({
        "type": "scan",
        "confidence": 0.75,
        "status": "pass",
        "violations": [{"type": "pii", "line": 4}],
        "report": {"pages": 2},
    })
    store.add_analysis({"type": "audit", "confidence": 0.25})
    store.set_filters({"dateFrom": "2024-01-01T00:00:00+00:00", "violationType": "pii", "sortBy": "confidence"})
    store.set_selected_analysis(a)
    store.set_loading(True)
    store.set_error("fetch failed")
    return a


def test_round_trip_through_memory_repository():
    repo = InMemorySnapshotRepository()
    original = AnalysisStore(repository=repo)
    populate(original)

    restored = AnalysisStore(repository=repo)

    assert restored.has_hydrated()
    assert restored.get_state() == original.get_state()


def test_round_trip_through_json_file(tmp_path):
    repo = FileSnapshotRepository(str(tmp_path))
    original = AnalysisStore(repository=repo)
    populate(original)

    restored = AnalysisStore(repository=repo)

    assert restored.get_state() == original.get_state()
    assert (tmp_path / "analysis-store.json").exists()


def test_snapshot_uses_wire_field_names():
    repo = InMemorySnapshotRepository()
    store = AnalysisStore(repository=repo)
    record = populate(store)

    snapshot = repo.load("analysis-store")
    assert snapshot.version == 1
    state = snapshot.state
    assert set(state) == {"analysisHistory", "statistics", "filters", "selectedAnalysis", "isLoading", "error"}
    assert state["statistics"] == {
        "totalAnalyses": 2,
        "violationsDetected": 1,
        "averageConfidence": 0.5,
        "analysisTypes": {"scan": 1, "audit": 1},
    }
    assert state["filters"]["sortBy"] == "confidence"
    assert state["filters"]["dateFrom"] == "2024-01-01T00:00:00+00:00"
    stored = state["analysisHistory"][1]
    assert stored["id"] == record.id
    assert stored["report"] == {"pages": 2}
    assert stored["violations"] == [{"type": "pii", "line": 4}]
    assert datetime.fromisoformat(stored["timestamp"]) == record.timestamp


def test_state_codec_merges_over_base():
    base = StoreState(is_loading=True, error="kept")
    state = state_from_dict({"analysisHistory": [], "isLoading": False}, base=base)
    assert state.is_loading is False
    assert state.error == "kept"
    assert state_from_dict(state_to_dict(state)) == state


def test_version_mismatch_discards_snapshot():
    repo = InMemorySnapshotRepository()
    old = AnalysisStore(repository=repo, version=0)
    old.add_analysis({"type": "scan"})

    store = AnalysisStore(repository=repo, version=1)

    assert store.has_hydrated()
    assert store.get_state() == StoreState()


def test_version_mismatch_uses_migrate():
    repo = InMemorySnapshotRepository()
    old = AnalysisStore(repository=repo, version=0)
    old.add_analysis({"type": "scan", "confidence": 0.5})
    calls = []

    def migrate(state, from_version):
        calls.append(from_version)
        state["isLoading"] = False
        return state

    store = AnalysisStore(repository=repo, version=1, migrate=migrate)

    assert calls == [0]
    assert store.get_statistics().total_analyses == 1
    assert store.get_state().analysis_history == old.get_state().analysis_history


def test_failed_migration_falls_back_to_defaults():
    repo = InMemorySnapshotRepository()
    AnalysisStore(repository=repo, version=0).add_analysis({})

    def migrate(state, from_version):
        raise KeyError("analysisHistory")

    store = AnalysisStore(repository=repo, version=2, migrate=migrate)
    assert store.get_state() == StoreState()


def test_unreadable_snapshot_is_discarded():
    repo = InMemorySnapshotRepository()
    repo.save(StoreSnapshot(name="analysis-store", version=1, state={"analysisHistory": 5}))

    store = AnalysisStore(repository=repo)

    assert store.get_state() == StoreState()
    assert store.has_hydrated()


def test_persistence_failure_sets_error_without_raising():
    repo = FailingRepo()
    store = AnalysisStore(repository=repo)

    record = store.add_analysis({"type": "scan"})

    state = store.get_state()
    assert state.analysis_history == [record]
    assert state.statistics.total_analyses == 1
    assert "disk full" in state.error
    assert repo.attempts == 1


def test_load_failure_sets_error_and_starts_empty():
    store = AnalysisStore(repository=FailingRepo(fail_load=True))
    assert store.has_hydrated()
    assert "storage offline" in store.get_state().error
    assert store.get_state().analysis_history == []


def test_flush_and_clear_storage():
    repo = InMemorySnapshotRepository()
    store = AnalysisStore(repository=repo, skip_hydration=True)
    assert not store.has_hydrated()
    assert repo.load("analysis-store") is None

    assert store.flush() is True
    assert repo.load("analysis-store") is not None

    store.clear_storage()
    assert repo.load("analysis-store") is None


def test_flush_failure_reports_error():
    store = AnalysisStore(repository=FailingRepo())
    assert store.flush() is False
    assert "disk full" in store.get_state().error


def test_clear_storage_failure_reports_error():
    store = AnalysisStore(repository=FailingRepo())
    store.clear_storage()
    assert "storage offline" in store.get_state().error


def test_rehydrate_without_repository():
    store = AnalysisStore()
    assert store.has_hydrated()
    assert store.rehydrate() is False


def test_timestamps_survive_round_trip_as_utc():
    repo = InMemorySnapshotRepository()
    store = AnalysisStore(repository=repo)
    record = store.add_analysis({})
    restored = AnalysisStore(repository=repo).get_analysis_by_id(record.id)
    assert restored.timestamp == record.timestamp
    assert restored.timestamp.utcoffset() == timezone.utc.utcoffset(None)


class UnreachableRepo:
    def load(self, name):
        raise ConnectionError("backend unreachable")

    def save(self, snapshot):
        raise ConnectionError("backend unreachable")

    def clear(self, name):
        raise ConnectionError("backend unreachable")


def test_unexpected_repository_error_does_not_escape_actions():
    store = AnalysisStore(repository=UnreachableRepo(), skip_hydration=True)
    seen = []
    store.subscribe(lambda new, old: seen.append(new))

    record = store.add_analysis({"type": "scan", "confidence": 0.5})

    state = store.get_state()
    assert state.analysis_history == [record]
    assert state.statistics.total_analyses == 1
    assert state.error == "backend unreachable"
    assert len(seen) == 1
    assert seen[0].error == "backend unreachable"


def test_unexpected_repository_error_on_load():
    store = AnalysisStore(repository=UnreachableRepo())
    assert store.has_hydrated()
    assert store.get_state().error == "backend unreachable"
    assert store.get_state().analysis_history == []


def test_unexpected_repository_error_on_clear_storage():
    class ClearFails(InMemorySnapshotRepository):
        def clear(self, name):
            raise RuntimeError("permission denied")

    store = AnalysisStore(repository=ClearFails())
    store.clear_storage()
    assert store.get_state().error == "permission denied"
