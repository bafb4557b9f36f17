from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from n_plus_one_todo.persistence import TodoFileError
from n_plus_one_todo.todo_store import TodoStore


def _location_sets(store: TodoStore) -> dict[str, set[tuple[str, str | None]]]:
    return {
        entry.fingerprint: {
            (record.location, record.test_location) for record in entry.locations
        }
        for entry in store.entries
    }


def test_ph3_store_001_absent_and_empty_files_are_empty_stores(tmp_path: Path) -> None:
    empty_file = tmp_path / "empty.yaml"
    empty_file.write_text("", encoding="utf-8")

    assert TodoStore(tmp_path / "missing.yaml").entries == []
    assert TodoStore(empty_file).entries == []


@pytest.mark.parametrize(
    "content",
    [
        "fingerprint: abc\n",
        "- 1\n- 2\n",
        "- fingerprint: abc\n",
        "- fingerprint: abc\n  query: q\n  locations: nope\n",
        "- fingerprint: abc\n  query: q\n  locations:\n    - test_location: spec/a\n",
        "[unclosed\n",
    ],
)
def test_ph3_store_002_malformed_content_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "todo.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(TodoFileError):
        TodoStore(path).entries


def test_ph3_store_003_round_trip_preserves_entries_and_locations(
    tmp_path: Path,
) -> None:
    path = tmp_path / "todo.yaml"
    store = TodoStore(path)
    store.add_entry("aaaa000000000001", "SELECT ?", "a.py:1", "tests/test_a.py")
    store.add_entry("aaaa000000000001", "SELECT ?", "a.py:2", None)
    store.add_entry("bbbb000000000002", "SELECT * FROM t WHERE id = ?", "b.py:1 -> c.py:2")
    store.save()

    reloaded = TodoStore(path)

    assert reloaded.fingerprints() == ["aaaa000000000001", "bbbb000000000002"]
    assert _location_sets(reloaded) == _location_sets(store)
    assert reloaded.find_entry("bbbb000000000002").query == "SELECT * FROM t WHERE id = ?"


def test_ph3_store_004_add_entry_is_idempotent_per_location(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todo.yaml")

    store.add_entry("fp", "SELECT ?", "a.py:1")
    store.add_entry("fp", "SELECT ?", "a.py:1")

    assert len(store.entries) == 1
    assert len(store.entries[0].locations) == 1


def test_ph3_store_005_none_location_creates_entry_without_locations(
    tmp_path: Path,
) -> None:
    store = TodoStore(tmp_path / "todo.yaml")

    store.add_entry("fp", "SELECT ?", None)
    store.add_entry("fp", "SELECT ?", None)

    assert store.is_ignored("fp")
    assert store.entries[0].locations == []
    assert not store.is_ignored("other")


def test_ph3_store_006_created_at_is_utc_and_never_updated(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todo.yaml")
    entry = store.add_entry("fp", "SELECT ?", "a.py:1")
    created_at = entry.created_at

    store.add_entry("fp", "SELECT ?", "b.py:1")

    assert entry.created_at == created_at
    parsed = datetime.fromisoformat(created_at)
    assert parsed.utcoffset() == timezone.utc.utcoffset(None)


def test_ph3_store_007_saved_file_uses_locations_list(tmp_path: Path) -> None:
    path = tmp_path / "todo.yaml"
    store = TodoStore(path)
    store.add_entry("fp", "SELECT ?", "a.py:1", "tests/test_a.py")
    store.save()

    raw = yaml.safe_load(path.read_text(encoding="utf-8"))

    assert raw[0]["fingerprint"] == "fp"
    assert raw[0]["locations"] == [
        {"location": "a.py:1", "test_location": "tests/test_a.py"}
    ]
    assert isinstance(raw[0]["created_at"], str)


def test_ph3_store_008_legacy_flat_location_is_loaded(tmp_path: Path) -> None:
    path = tmp_path / "todo.yaml"
    path.write_text(
        "- fingerprint: old1\n"
        "  query: SELECT * FROM users\n"
        "  location: app/models/user.rb:10\n"
        "  created_at: 2024-01-01T00:00:00Z\n"
        "- fingerprint: old2\n"
        "  query: SELECT * FROM posts\n",
        encoding="utf-8",
    )

    store = TodoStore(path)

    assert store.entries[0].locations[0].location == "app/models/user.rb:10"
    assert store.entries[0].locations[0].test_location is None
    assert store.entries[0].created_at.startswith("2024-01-01T00:00:00")
    assert store.entries[1].locations == []
    assert store.entries[1].created_at is None


def test_ph3_store_009_duplicate_fingerprints_are_merged_on_load(
    tmp_path: Path,
) -> None:
    path = tmp_path / "todo.yaml"
    path.write_text(
        "- fingerprint: fp\n  query: q\n  location: a.py:1\n"
        "- fingerprint: fp\n  query: q\n  location: b.py:1\n",
        encoding="utf-8",
    )

    store = TodoStore(path)

    assert store.fingerprints() == ["fp"]
    assert [r.location for r in store.entries[0].locations] == ["a.py:1", "b.py:1"]


def test_ph3_store_010_prune_keeps_records_without_test_location(
    tmp_path: Path,
) -> None:
    store = TodoStore(tmp_path / "todo.yaml")
    store.add_entry("fp-a", "SELECT a", "a.py:1", "spec/a")
    store.add_entry("fp-b", "SELECT b", "b.py:1", None)

    removed = store.filter_by_test_locations(set(), {"spec/a"})

    assert removed == 1
    assert store.fingerprints() == ["fp-b"]


def test_ph3_store_011_prune_keeps_records_of_tests_that_did_not_run(
    tmp_path: Path,
) -> None:
    store = TodoStore(tmp_path / "todo.yaml")
    store.add_entry("fp-a", "SELECT a", "a.py:1", "spec/a")

    removed = store.filter_by_test_locations(set(), {"spec/other"})

    assert removed == 0
    assert store.fingerprints() == ["fp-a"]


def test_ph3_store_012_prune_keeps_redetected_and_counts_records(
    tmp_path: Path,
) -> None:
    store = TodoStore(tmp_path / "todo.yaml")
    store.add_entry("fp", "SELECT a", "a.py:1", "spec/a")
    store.add_entry("fp", "SELECT a", "a.py:2", "spec/a")
    store.add_entry("fp", "SELECT a", "a.py:3", "spec/b")
    store.add_entry("fp-gone", "SELECT b", "b.py:1", "spec/a")
    store.add_entry("fp-gone", "SELECT b", "b.py:2", "spec/a")

    removed = store.filter_by_test_locations({("fp", "a.py:1")}, {"spec/a"})

    assert removed == 3
    assert store.fingerprints() == ["fp"]
    assert [r.location for r in store.entries[0].locations] == ["a.py:1", "a.py:3"]
    assert store.find_entry("fp-gone") is None


def test_ph3_store_013_prune_keeps_entries_that_never_had_locations(
    tmp_path: Path,
) -> None:
    store = TodoStore(tmp_path / "todo.yaml")
    store.add_entry("fp", "SELECT a", None)

    assert store.filter_by_test_locations(set(), {"spec/a"}) == 0
    assert store.fingerprints() == ["fp"]


def test_ph3_store_014_test_locations_and_clear(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todo.yaml")
    store.add_entry("fp-a", "SELECT a", "a.py:1", "spec/a")
    store.add_entry("fp-a", "SELECT a", "a.py:2", None)
    store.add_entry("fp-b", "SELECT b", "b.py:1", "spec/b")

    assert store.test_locations() == {"spec/a", "spec/b"}

    store.clear()

    assert store.entries == []
    assert not store.is_ignored("fp-a")


def test_ph3_store_015_save_propagates_os_errors(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "missing" / "todo.yaml")
    store.add_entry("fp", "SELECT ?", "a.py:1")

    with pytest.raises(OSError):
        store.save()


def test_ph3_store_016_failed_write_keeps_previous_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "todo.yaml"
    store = TodoStore(path)
    store.add_entry("fp-a", "SELECT a", "a.py:1")
    store.save()
    previous = path.read_text(encoding="utf-8")
    store.add_entry("fp-b", "SELECT b", "b.py:1")

    def failing_replace(src: str, dst: object) -> None:
        raise OSError("No space left on device")

    monkeypatch.setattr("n_plus_one_todo.persistence.os.replace", failing_replace)
    with pytest.raises(OSError):
        store.save()

    assert path.read_text(encoding="utf-8") == previous
    assert sorted(p.name for p in tmp_path.iterdir()) == ["todo.yaml"]


def test_ph3_store_017_lookup_loads_file_lazily(tmp_path: Path) -> None:
    path = tmp_path / "todo.yaml"
    path.write_text("- fingerprint: fp\n  query: q\n  location: a.py:1\n", encoding="utf-8")

    store = TodoStore(path)

    assert store.find_entry("fp").query == "q"
    assert store.is_ignored("fp")
    assert store.entries[0].locations[0].location == "a.py:1"
