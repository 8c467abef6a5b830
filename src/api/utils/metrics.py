"""
Simple in-process metrics for authentication, quota and request handling.
Lightweight alternative to Prometheus; feeds the admin console.
"""

from typing import Dict, Any
from datetime import datetime, timedelta, timezone
from collections import defaultdict, deque
import threading
import time

from src.core.logger.logger import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SimpleMetrics:
    """Simple in-memory metrics collector."""

    def __init__(self, retention_hours: int = 24):
        self._lock = threading.Lock()
        self._retention_hours = retention_hours
        self._started_at = time.monotonic()
        self._reset_state()

    def _reset_state(self):
        # Time-series data (timestamp, value) pairs
        self._auth_success = deque()
        self._auth_failures = deque()
        self._quota_rejections = deque()
        self._requests = deque()  # (timestamp, (status_code, duration_ms))

        self._counters = {
            'total_auth_attempts': 0,
            'total_auth_success': 0,
            'total_auth_failures': 0,
            'total_lockouts': 0,
            'total_password_resets': 0,
            'total_quota_rejections': 0,
            'total_requests': 0,
            'total_server_errors': 0,
        }

        # Per-realm counters ('user' or 'admin')
        self._realm_counters = defaultdict(lambda: {
            'auth_attempts': 0,
            'auth_success': 0,
            'auth_failures': 0,
        })
        self._quota_by_tier = defaultdict(int)

    def _cleanup_old_data(self):
        """Remove data older than retention period."""
        cutoff_time = _now() - timedelta(hours=self._retention_hours)

        def cleanup_deque(data_deque):
            while data_deque and data_deque[0][0] < cutoff_time:
                data_deque.popleft()

        cleanup_deque(self._auth_success)
        cleanup_deque(self._auth_failures)
        cleanup_deque(self._quota_rejections)
        cleanup_deque(self._requests)

    def record_auth_attempt(self, realm: str, success: bool):
        """Record a login attempt for the 'user' or 'admin' realm."""
        with self._lock:
            now = _now()

            self._counters['total_auth_attempts'] += 1
            self._realm_counters[realm]['auth_attempts'] += 1

            if success:
                self._auth_success.append((now, 1))
                self._counters['total_auth_success'] += 1
                self._realm_counters[realm]['auth_success'] += 1
            else:
                self._auth_failures.append((now, 1))
                self._counters['total_auth_failures'] += 1
                self._realm_counters[realm]['auth_failures'] += 1

            self._cleanup_old_data()

    def record_lockout(self):
        with self._lock:
            self._counters['total_lockouts'] += 1

    def record_password_reset(self):
        with self._lock:
            self._counters['total_password_resets'] += 1

    def record_quota_rejection(self, tier: str):
        with self._lock:
            self._quota_rejections.append((_now(), 1))
            self._counters['total_quota_rejections'] += 1
            self._quota_by_tier[tier] += 1
            self._cleanup_old_data()

    def record_request(self, status_code: int, duration_ms: float):
        with self._lock:
            self._requests.append((_now(), (status_code, duration_ms)))
            self._counters['total_requests'] += 1
            if status_code >= 500:
                self._counters['total_server_errors'] += 1
            self._cleanup_old_data()

    def uptime_seconds(self) -> int:
        return int(time.monotonic() - self._started_at)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get current authentication and quota metrics summary."""
        with self._lock:
            self._cleanup_old_data()

            one_hour_ago = _now() - timedelta(hours=1)

            recent_success = sum(1 for ts, _ in self._auth_success if ts > one_hour_ago)
            recent_failures = sum(1 for ts, _ in self._auth_failures if ts > one_hour_ago)
            recent_quota = sum(1 for ts, _ in self._quota_rejections if ts > one_hour_ago)

            total_recent = recent_success + recent_failures
            success_rate = (recent_success / total_recent * 100) if total_recent > 0 else 0

            realm_metrics = {}
            for realm, counters in self._realm_counters.items():
                realm_total = counters['auth_success'] + counters['auth_failures']
                realm_success_rate = (counters['auth_success'] / realm_total * 100) if realm_total > 0 else 0

                realm_metrics[realm] = {
                    'total_attempts': counters['auth_attempts'],
                    'success_count': counters['auth_success'],
                    'failure_count': counters['auth_failures'],
                    'success_rate_percent': round(realm_success_rate, 2),
                }

            return {
                'timestamp': _now().isoformat(),
                'overall': {
                    'total_auth_attempts': self._counters['total_auth_attempts'],
                    'total_auth_success': self._counters['total_auth_success'],
                    'total_auth_failures': self._counters['total_auth_failures'],
                    'total_lockouts': self._counters['total_lockouts'],
                    'total_password_resets': self._counters['total_password_resets'],
                    'total_quota_rejections': self._counters['total_quota_rejections'],
                    'success_rate_percent': round(success_rate, 2)
                },
                'last_hour': {
                    'auth_success': recent_success,
                    'auth_failures': recent_failures,
                    'quota_rejections': recent_quota,
                    'success_rate_percent': round(success_rate, 2)
                },
                'by_realm': realm_metrics,
                'quota_rejections_by_tier': dict(self._quota_by_tier),
                'retention_hours': self._retention_hours
            }

    def get_request_stats(self, window_minutes: int = 60) -> Dict[str, Any]:
        """Request volume, error rate and latency over the recent window."""
        with self._lock:
            self._cleanup_old_data()
            cutoff = _now() - timedelta(minutes=window_minutes)
            recent = [value for ts, value in self._requests if ts > cutoff]

            total = len(recent)
            errors = sum(1 for status_code, _ in recent if status_code >= 500)
            avg_latency = (sum(duration for _, duration in recent) / total) if total > 0 else 0

            return {
                'window_minutes': window_minutes,
                'requests': total,
                'server_errors': errors,
                'error_rate_percent': round(errors / total * 100, 2) if total > 0 else 0,
                'avg_response_time_ms': round(avg_latency, 2),
                'total_requests': self._counters['total_requests'],
                'total_server_errors': self._counters['total_server_errors'],
            }

    def recent_auth_failures(self, window_minutes: int = 60) -> int:
        with self._lock:
            cutoff = _now() - timedelta(minutes=window_minutes)
            return sum(1 for ts, _ in self._auth_failures if ts > cutoff)

    def recent_quota_rejections(self, window_minutes: int = 60) -> int:
        with self._lock:
            cutoff = _now() - timedelta(minutes=window_minutes)
            return sum(1 for ts, _ in self._quota_rejections if ts > cutoff)

    def reset(self):
        """Drop all collected data (used between tests)."""
        with self._lock:
            self._reset_state()


# Global metrics instance
metrics = SimpleMetrics()


def get_metrics() -> SimpleMetrics:
    """Get the global metrics instance."""
    return metrics
