"""Operator alerts for allocation events that must not be silently dropped.

Shortfalls, metadata outages, failed webhook deliveries and exhausted
allocation retries are raised here. Alerts are kept in a bounded in-process
buffer served by the alerts endpoint and mirrored to the ``alerts`` logger,
which is where a log shipper picks them up.
"""

import logging
import threading
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

logger = logging.getLogger("alerts")

ALERT_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "critical": logging.CRITICAL}
_SEVERITY = {name: rank for rank, name in enumerate(ALERT_LEVELS)}


class AlertManager:
    def __init__(self, max_buffer: int = 200):
        self._lock = threading.Lock()
        self._alerts: Deque[Dict] = deque(maxlen=max_buffer)
        self._raised: Counter = Counter()

    def alert(
        self,
        level: str,
        title: str,
        message: str,
        source: str = "system",
        **context,
    ) -> Dict:
        """Record an alert; ``context`` carries identifiers such as order or tenant."""
        if level not in ALERT_LEVELS:
            raise ValueError(f"Unknown alert level: {level}")
        entry = {
            "level": level,
            "title": title,
            "message": message,
            "source": source,
            "context": context,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            self._alerts.append(entry)
            self._raised[level] += 1
        logger.log(ALERT_LEVELS[level], f"[{source}] {title}: {message}")
        return entry

    def get_recent(
        self,
        limit: int = 20,
        level: Optional[str] = None,
        source: Optional[str] = None,
    ) -> List[Dict]:
        """Newest first. ``level`` is a minimum severity."""
        min_rank = _SEVERITY.get(level, 0) if level else 0
        with self._lock:
            alerts = list(self._alerts)
        matching = [
            a for a in reversed(alerts)
            if _SEVERITY[a["level"]] >= min_rank and (source is None or a["source"] == source)
        ]
        return matching[:limit]

    def counts(self) -> Dict[str, int]:
        """Alerts raised per level since start, including ones evicted from the buffer."""
        with self._lock:
            return {level: self._raised[level] for level in ALERT_LEVELS}

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()
            self._raised.clear()


alert_manager = AlertManager()
