"""Bounded in-memory log of provider requests, responses and errors."""

import threading
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List
import logging

from ..models import DebugLogEntry

logger = logging.getLogger(__name__)

DEBUG_LOG_SERVICES = ("openai", "midjourney")
DEBUG_LOG_TYPES = ("request", "response", "error")
MAX_ENTRIES_PER_SERVICE = 100


class DebugLogStore:
    """Keeps the most recent entries for each service; older entries fall off."""

    def __init__(self, max_entries: int = MAX_ENTRIES_PER_SERVICE):
        self.max_entries = max_entries
        self._entries: Dict[str, Deque[DebugLogEntry]] = {
            service: deque(maxlen=max_entries) for service in DEBUG_LOG_SERVICES
        }
        self._lock = threading.Lock()

    def add(self, service: str, entry_type: str, content: Any) -> DebugLogEntry:
        if service not in self._entries:
            raise ValueError(f"Unknown debug log service: {service}")
        if entry_type not in DEBUG_LOG_TYPES:
            raise ValueError(f"Unknown debug log type: {entry_type}")

        entry = DebugLogEntry(
            timestamp=datetime.now().isoformat(),
            service=service,
            type=entry_type,
            content=content,
        )
        with self._lock:
            self._entries[service].append(entry)
        return entry

    def record(self, service: str, entry_type: str, content: Any) -> None:
        """Like ``add`` but never raises; a failed record is only logged."""
        try:
            self.add(service, entry_type, content)
        except Exception as e:
            logger.warning(f"Failed to record {service} {entry_type} debug entry: {e}")

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            return {
                service: [entry.to_dict() for entry in entries]
                for service, entries in self._entries.items()
            }

    def clear(self) -> None:
        with self._lock:
            for entries in self._entries.values():
                entries.clear()
