"""Prometheus-compatible metrics for application monitoring."""

import logging
import threading
import time
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

# Domain counters exposed alongside the HTTP metrics
DOMAIN_COUNTERS = {
    "orders_processed_total": "Orders allocated and recorded",
    "orders_duplicate_total": "Order deliveries answered from the ledger (idempotent replays)",
    "batches_synthesized_total": "Batches created on the fly to cover a shortfall",
    "allocation_shortfall_units_total": "Units recorded as backordered after allocation",
    "allocation_retries_total": "Order transactions retried after a persistence conflict",
    "metadata_lookup_failures_total": "Product metadata lookups that degraded to no hints",
    "webhook_failures_total": "Authentic webhook deliveries that failed processing",
}


class MetricsCollector:
    """Collects HTTP request and allocation metrics in Prometheus exposition format."""

    def __init__(self):
        self._lock = threading.Lock()
        self.request_count: Dict[str, int] = {}
        self.request_duration: Dict[str, List[float]] = {}
        self.error_count: Dict[int, int] = {}
        self.active_requests: int = 0
        self.counters: Dict[str, int] = {name: 0 for name in DOMAIN_COUNTERS}

    def record_request(self, method: str, path: str, status: int, duration: float):
        # Normalize path to avoid cardinality explosion
        normalized = self._normalize_path(path)
        key = f"{method} {normalized}"
        with self._lock:
            self.request_count[key] = self.request_count.get(key, 0) + 1
            durations = self.request_duration.setdefault(key, [])
            durations.append(duration)
            if len(durations) > 1000:
                self.request_duration[key] = durations[-1000:]
            if status >= 400:
                self.error_count[status] = self.error_count.get(status, 0) + 1

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in self.counters:
            raise KeyError(f"Unknown counter {name}")
        with self._lock:
            self.counters[name] += amount

    def reset(self) -> None:
        with self._lock:
            self.request_count.clear()
            self.request_duration.clear()
            self.error_count.clear()
            self.counters = {name: 0 for name in DOMAIN_COUNTERS}

    @staticmethod
    def _normalize_path(path: str) -> str:
        """Replace numeric IDs with :id to limit cardinality."""
        parts = path.split("/")
        return "/".join(":id" if p.isdigit() else p for p in parts)

    def get_prometheus_metrics(self) -> str:
        lines: List[str] = []
        lines.append("# HELP http_requests_total Total HTTP requests")
        lines.append("# TYPE http_requests_total counter")
        for key, count in sorted(self.request_count.items()):
            method, path = key.split(" ", 1)
            lines.append(f'http_requests_total{{method="{method}",path="{path}"}} {count}')

        lines.append("# HELP http_errors_total Total HTTP errors by status code")
        lines.append("# TYPE http_errors_total counter")
        for code, count in sorted(self.error_count.items()):
            lines.append(f'http_errors_total{{status="{code}"}} {count}')

        lines.append("# HELP http_active_requests Current active requests")
        lines.append("# TYPE http_active_requests gauge")
        lines.append(f"http_active_requests {self.active_requests}")

        lines.append("# HELP http_request_duration_seconds Request duration summary")
        lines.append("# TYPE http_request_duration_seconds summary")
        for key, durations in sorted(self.request_duration.items()):
            if durations:
                method, path = key.split(" ", 1)
                avg = sum(durations) / len(durations)
                p99 = sorted(durations)[int(len(durations) * 0.99)] if len(durations) > 1 else durations[0]
                lines.append(f'http_request_duration_seconds{{method="{method}",path="{path}",quantile="0.99"}} {p99:.4f}')
                lines.append(f'http_request_duration_seconds{{method="{method}",path="{path}",quantile="0.5"}} {avg:.4f}')

        for name, help_text in DOMAIN_COUNTERS.items():
            lines.append(f"# HELP batchtrace_{name} {help_text}")
            lines.append(f"# TYPE batchtrace_{name} counter")
            lines.append(f"batchtrace_{name} {self.counters[name]}")

        return "\n".join(lines) + "\n"


metrics = MetricsCollector()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware that records request metrics."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        metrics.active_requests += 1
        start = time.time()
        try:
            response = await call_next(request)
            duration = time.time() - start
            metrics.record_request(
                request.method,
                request.url.path,
                response.status_code,
                duration,
            )
            return response
        except Exception:
            duration = time.time() - start
            metrics.record_request(request.method, request.url.path, 500, duration)
            raise
        finally:
            metrics.active_requests -= 1
