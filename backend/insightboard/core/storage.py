"""
Storage abstraction for analysis results.

Analyses live in process memory only and are lost on restart. The
`AnalysisStore` interface keeps the pipeline independent of the backend so
tests can pass their own store.
"""
import time
import uuid
import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, Optional, Tuple

from insightboard.core.config import get_settings
from insightboard.core.schemas import AnalysisResult

logger = logging.getLogger(__name__)


class AnalysisStore(ABC):
    """Persistence collaborator for analysis results."""

    @abstractmethod
    def save(self, analysis: AnalysisResult) -> str:
        """Store an analysis and return its newly assigned opaque id."""

    @abstractmethod
    def load(self, analysis_id: str) -> Optional[AnalysisResult]:
        """Return the analysis for an id, or None if unknown or expired."""


class InMemoryAnalysisStore(AnalysisStore):
    """
    Dictionary-backed store keyed by uuid4.

    Entries optionally expire after `ttl_seconds`; expired entries are swept
    on every save. Not shared between worker processes.
    """

    def __init__(self, ttl_seconds: Optional[float] = None):
        self._analyses: Dict[str, Tuple[AnalysisResult, float]] = {}
        self._lock = Lock()
        self.ttl_seconds = ttl_seconds

    def _is_expired(self, stored_at: float, now: float) -> bool:
        return bool(self.ttl_seconds) and now - stored_at > self.ttl_seconds

    def save(self, analysis: AnalysisResult) -> str:
        self.cleanup_expired()
        analysis_id = str(uuid.uuid4())
        analysis.file.id = analysis_id
        with self._lock:
            self._analyses[analysis_id] = (analysis, time.time())
        logger.debug(f"Stored analysis {analysis_id}")
        return analysis_id

    def load(self, analysis_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            entry = self._analyses.get(analysis_id)
            if entry is None:
                return None
            analysis, stored_at = entry
            if self._is_expired(stored_at, time.time()):
                del self._analyses[analysis_id]
                logger.info(f"Analysis {analysis_id} expired")
                return None
            return analysis

    def cleanup_expired(self) -> int:
        """Drop every expired analysis, returning how many were removed."""
        with self._lock:
            now = time.time()
            expired_ids = [
                analysis_id for analysis_id, (_, stored_at) in self._analyses.items()
                if self._is_expired(stored_at, now)
            ]
            for analysis_id in expired_ids:
                del self._analyses[analysis_id]
        if expired_ids:
            logger.info(f"Removed {len(expired_ids)} expired analyses")
        return len(expired_ids)

    def size(self) -> int:
        with self._lock:
            return len(self._analyses)


_store_instance: Optional[AnalysisStore] = None


def get_analysis_store() -> AnalysisStore:
    """Get the process-wide analysis store (singleton)."""
    global _store_instance
    if _store_instance is None:
        _store_instance = InMemoryAnalysisStore(ttl_seconds=get_settings().analysis_ttl_seconds)
        logger.info("Using in-memory analysis store")
    return _store_instance


def reset_analysis_store():
    """Reset store instance (for testing)."""
    global _store_instance
    _store_instance = None
