"""
LobeGraph Monitoring: Health context and rotating event log.

Two monitoring layers:

1. ``health_context()``: Natural language string describing runtime state
   (e.g. "LobeGraph: 12 lobes, 7,776 topic networks, 4 events processed").
2. ``LobeEventLogger``: Rotating JSON-line log at ``<log_dir>/lobegraph.log``.

Usage::

    from lobe_monitoring import LobeEventLogger, health_context
    events = LobeEventLogger(cfg)
    events.log_event("lobe_output", {"lobe": "Ethics & Philosophy"})
    print(health_context(runtime))
    events.close()
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Dict, Optional

from lobe_config import LobeConfig

logger = logging.getLogger("lobegraph.monitoring")


# ── Health context ─────────────────────────────────────────────────────


def health_context(runtime: Any) -> str:
    """Generate a natural language health summary.

    Args:
        runtime: Anything with a ``stats()`` method returning the
            ``LobeRuntime.stats()`` shape.
    """
    try:
        stats = runtime.stats()
    except Exception as exc:
        return f"LobeGraph: status unavailable ({exc})"

    parts = [
        f"LobeGraph: {stats.get('lobes', 0):,} lobes",
        f"{stats.get('topic_networks', 0):,} topic networks",
        f"{stats.get('events_processed', 0):,} events processed",
    ]
    pockets = stats.get("pockets", 0)
    if pockets:
        parts.append(f"{pockets} quantum pockets")
    skipped = stats.get("events_skipped", 0)
    if skipped:
        parts.append(f"{skipped} non-text events skipped")
    parts.append("loop running" if stats.get("is_running") else "loop idle")
    return ", ".join(parts)


# ── Rotating event log ─────────────────────────────────────────────────


class LobeEventLogger:
    """Rotating file logger for runtime events.

    Writes structured JSON-line events with automatic rotation based on
    file size.

    Args:
        config: ``LobeConfig`` with monitoring parameters.
    """

    def __init__(self, config: LobeConfig) -> None:
        self._cfg = config.monitoring
        self._logger = logging.getLogger("lobegraph.events")
        self._handler: Optional[logging.Handler] = None
        self.log_path = Path(self._cfg.log_dir).expanduser() / "lobegraph.log"
        self._setup_handler()

    def _setup_handler(self) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            str(self.log_path),
            maxBytes=self._cfg.max_log_size_mb * 1024 * 1024,
            backupCount=self._cfg.backup_count,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(handler)
        self._logger.setLevel(logging.INFO)
        self._handler = handler

    def log_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Write a structured event to the log."""
        event = {
            "timestamp": time.time(),
            "event": event_type,
            "data": data,
        }
        self._logger.info(json.dumps(event, default=str))

    def close(self) -> None:
        """Detach and close the file handler."""
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None
