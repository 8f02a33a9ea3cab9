"""Append-only pipeline event stream (JSON lines)."""

from __future__ import annotations

import itertools
import json
import threading
import uuid
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any, Iterator, Protocol

from ..utils import now_utc_iso, sanitize_payload


class EventSink(Protocol):
    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        ...


@dataclass
class EventWriter:
    path: Path
    run_id: str
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)
    _seq: Iterator[int] = field(default_factory=itertools.count, repr=False, init=False)

    @classmethod
    def open(cls, path: Path | str | None) -> "EventWriter | None":
        if not path:
            return None
        return cls(Path(path), run_id=uuid.uuid4().hex)

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        # Image bytes never reach the log; sanitize_payload replaces them.
        with self._lock:
            event = {
                "type": event_type,
                "run_id": self.run_id,
                "seq": next(self._seq),
                "ts": now_utc_iso(),
            }
            event.update(sanitize_payload(payload))
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(f"{json.dumps(event)}\n")
        return event


class NullEventWriter:
    run_id = ""

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        return {"type": event_type, **payload}
