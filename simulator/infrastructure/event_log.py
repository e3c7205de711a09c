"""
Event log implementations

InMemoryEventLog keeps events per car in sequence order. JsonlEventLog adds
durability by appending every event as one JSON line, and reloads the file on
start so a restarted process can replay history.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.events import DomainEvent
from ..core.exceptions import EventSequenceConflict, TransientStoreError, ValidationError
from ..interfaces.event_log import IEventLog

logger = logging.getLogger(__name__)


class InMemoryEventLog(IEventLog):
    """List-per-car event log"""

    def __init__(self):
        self._events: Dict[str, List[DomainEvent]] = {}

    def append(self, car_id: str, event: DomainEvent, seq: int):
        if event.car_id != car_id or event.sequence != seq:
            raise ValidationError(
                f"Event {event.event_type.value} ({event.car_id}#{event.sequence}) "
                f"does not match append target {car_id}#{seq}")
        events = self._events.setdefault(car_id, [])
        if events and seq <= events[-1].sequence:
            stored = self._find(events, seq)
            if stored is not None and stored.same_content(event):
                logger.debug("[EventLog] Duplicate append of %s#%d ignored", car_id, seq)
                return
            raise EventSequenceConflict(car_id, seq)
        self._write(event)
        events.append(event)

    def query(self, car_id: Optional[str] = None, start: Optional[float] = None,
              end: Optional[float] = None) -> List[DomainEvent]:
        if car_id is not None:
            candidates = list(self._events.get(car_id, []))
        else:
            candidates = [event for events in self._events.values() for event in events]
            candidates.sort(key=lambda e: (e.timestamp, e.car_id, e.sequence))
        return [
            event for event in candidates
            if (start is None or event.timestamp >= start)
            and (end is None or event.timestamp <= end)
        ]

    def last_sequence(self, car_id: str) -> int:
        events = self._events.get(car_id)
        return events[-1].sequence if events else 0

    def car_ids(self) -> List[str]:
        return list(self._events.keys())

    def _write(self, event: DomainEvent):
        """Persist hook for subclasses; runs before the event becomes visible"""

    @staticmethod
    def _find(events: List[DomainEvent], seq: int) -> Optional[DomainEvent]:
        for event in events:
            if event.sequence == seq:
                return event
        return None


class JsonlEventLog(InMemoryEventLog):
    """
    Event log persisted to a JSON Lines file

    Args:
        file_path: Log file; created if missing, replayed if present
    """

    def __init__(self, file_path: Union[str, Path]):
        super().__init__()
        self.file_path = Path(file_path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self):
        if not self.file_path.exists():
            return
        loaded = 0
        with open(self.file_path, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    event = DomainEvent.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, ValueError):
                    logger.warning("[EventLog] Skipping unreadable line %d in %s", line_number, self.file_path)
                    continue
                self._events.setdefault(event.car_id, []).append(event)
                loaded += 1
        for events in self._events.values():
            events.sort(key=lambda e: e.sequence)
        logger.info("[EventLog] Replayed %d events from %s", loaded, self.file_path)

    def _write(self, event: DomainEvent):
        try:
            with open(self.file_path, 'a', encoding='utf-8') as f:
                f.write(json.dumps(event.to_dict()) + "\n")
        except OSError as e:
            raise TransientStoreError(f"Could not append to {self.file_path}: {e}") from e
