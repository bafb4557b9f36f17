import sys
from pathlib import Path

import pytest


def _add_src_to_path() -> None:
    root = Path(__file__).resolve().parents[1]
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


_add_src_to_path()


@pytest.fixture
def todo_path(tmp_path: Path) -> Path:
    """TODO file location inside a per-test directory; not created."""
    return tmp_path / ".n_plus_one_todo.yaml"
