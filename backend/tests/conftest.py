"""
Shared fixtures.
"""
import os

# Must be set before main.py loads settings
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

import pytest

from insightboard.core.cache import get_insight_cache, get_parse_cache
from insightboard.core.config import reload_settings
from insightboard.core.schemas import TabularData
from insightboard.core.storage import reset_analysis_store
from insightboard.services.inference import infer_column_types


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    """No AI credentials and empty caches/store for every test."""
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    get_parse_cache().clear()
    get_insight_cache().clear()
    reset_analysis_store()
    yield
    reset_analysis_store()


@pytest.fixture
def make_tabular():
    """Build TabularData from records, inferring types like the parsers do."""
    def _make(rows, columns=None):
        columns = columns or (list(rows[0].keys()) if rows else [])
        projected = [{c: row.get(c) for c in columns} for row in rows]
        return TabularData(columns=columns, rows=projected, column_types=infer_column_types(projected, columns))
    return _make


@pytest.fixture
def settings_env(monkeypatch):
    """Set environment variables and reload settings; restored afterwards."""
    def _set(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, str(value))
        return reload_settings()
    yield _set
    monkeypatch.undo()
    reload_settings()
