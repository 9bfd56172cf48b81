import os as _os
import sys

import pytest

# Ensure project root is importable (so `import zkop` works without an install)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from zkop import db  # noqa: E402
from zkop.settings import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def tmp_db(tmp_path, monkeypatch):
    """Every test journals into its own sqlite file."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "zkop.db")))
    db.init_db()
    return db
