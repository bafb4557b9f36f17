import io
import json
import re
from pathlib import Path

from cli.todo_cli import run
from n_plus_one_todo.todo_store import TodoStore


def _strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


def _seed(path: Path) -> None:
    store = TodoStore(path)
    store.add_entry("fp00000000000001", "SELECT * FROM users WHERE id = ?", "app/user.py:10", "spec/x")
    store.save()


def test_ph9_cli_001_list_json_outputs_entries(todo_path: Path) -> None:
    path = todo_path
    _seed(path)
    stdout = io.StringIO()
    stderr = io.StringIO()

    exit_code = run(["list", "--path", str(path), "--format", "json"], stdout, stderr)

    assert exit_code == 0
    payload = json.loads(_strip_ansi(stdout.getvalue()))
    assert payload["entries"][0]["fingerprint"] == "fp00000000000001"
    assert payload["entries"][0]["locations"] == [
        {"location": "app/user.py:10", "test_location": "spec/x"}
    ]


def test_ph9_cli_002_list_table_reports_empty_file(tmp_path: Path) -> None:
    stdout = io.StringIO()

    exit_code = run(["list", "--path", str(tmp_path / "none.yaml")], stdout, io.StringIO())

    assert exit_code == 0
    assert "No entries" in _strip_ansi(stdout.getvalue())


def test_ph9_cli_003_list_table_renders_rows(todo_path: Path) -> None:
    path = todo_path
    _seed(path)
    stdout = io.StringIO()

    exit_code = run(["list", "--path", str(path)], stdout, io.StringIO())

    assert exit_code == 0
    assert "SELECT" in _strip_ansi(stdout.getvalue())


def test_ph9_cli_004_list_malformed_file_fails(todo_path: Path) -> None:
    path = todo_path
    path.write_text("broken: true\n", encoding="utf-8")
    stderr = io.StringIO()

    exit_code = run(["list", "--path", str(path)], io.StringIO(), stderr)

    assert exit_code == 2
    assert "Failed to read TODO file" in stderr.getvalue()


def test_ph9_cli_005_migrate_rewrites_file(todo_path: Path) -> None:
    path = todo_path
    path.write_text(
        "- fingerprint: legacy\n  query: SELECT 1\n  location: a.py:1\n",
        encoding="utf-8",
    )
    stdout = io.StringIO()

    exit_code = run(["migrate", "--path", str(path)], stdout, io.StringIO())

    assert exit_code == 0
    assert "Migrated" in stdout.getvalue()
    assert TodoStore(path).entries[0].query == "SELECT ?"


def test_ph9_cli_006_migrate_missing_file_and_bad_arguments(tmp_path: Path) -> None:
    stderr = io.StringIO()

    assert run(["migrate", "--path", str(tmp_path / "none.yaml")], io.StringIO(), stderr) == 2
    assert "does not exist" in stderr.getvalue()
    assert run(["unknown"], io.StringIO(), io.StringIO()) == 2
