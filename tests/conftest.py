import sys
from pathlib import Path

import pytest

# Allow `import markpanel` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))


@pytest.fixture
def store(tmp_path):
    from markpanel.store import BookmarkStore

    with BookmarkStore(tmp_path / "bookmarks.sqlite") as s:
        yield s
