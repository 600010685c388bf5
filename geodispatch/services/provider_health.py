"""
Per-provider request statistics for the operator status snapshot.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict

from ..providers.models import ProviderStats

logger = logging.getLogger(__name__)


class ProviderHealthTracker:
    """Counts selections, outbound calls and failures per provider."""

    def __init__(self):
        self._lock = threading.Lock()
        self._stats: Dict[str, ProviderStats] = {}

    def _entry(self, provider_id: str) -> ProviderStats:
        stats = self._stats.get(provider_id)
        if stats is None:
            stats = ProviderStats(provider_id=provider_id)
            self._stats[provider_id] = stats
        return stats

    def record_selection(self, provider_id: str) -> None:
        with self._lock:
            self._entry(provider_id).selections += 1

    def record_success(self, provider_id: str, elapsed_ms: float) -> None:
        with self._lock:
            stats = self._entry(provider_id)
            self._record_call(stats, elapsed_ms)
            stats.successful_requests += 1

    def record_failure(self, provider_id: str, reason: str, elapsed_ms: float) -> None:
        with self._lock:
            stats = self._entry(provider_id)
            self._record_call(stats, elapsed_ms)
            stats.failed_requests += 1
            stats.last_failure_reason = reason

    @staticmethod
    def _record_call(stats: ProviderStats, elapsed_ms: float) -> None:
        # Running mean over all outbound calls
        stats.avg_response_time = (
            stats.avg_response_time * stats.total_requests + elapsed_ms
        ) / (stats.total_requests + 1)
        stats.total_requests += 1
        stats.last_request_time = datetime.now(timezone.utc).isoformat()

    def get(self, provider_id: str) -> ProviderStats:
        with self._lock:
            return self._entry(provider_id).model_copy()
