"""
Metrics endpoint for performance monitoring.
"""
from fastapi import APIRouter

from insightboard.core.cache import get_insight_cache, get_parse_cache
from insightboard.core.performance import PerformanceMonitor

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """
    Operation timings (parsing, chart selection, summarization, requests)
    and cache statistics.
    """
    return {
        'performance': PerformanceMonitor.get_all_metrics(),
        'cache': {
            'parse_cache': get_parse_cache().get_stats(),
            'insight_cache': get_insight_cache().get_stats(),
        }
    }
