"""Append-only bulletin board of ledger events.

Subscribers are notified after an event is posted. Events never carry a
rating or a key; respondents appear only as a SHA-256 fingerprint.
"""

from __future__ import annotations

import hashlib
import threading
from typing import Any, Callable, Dict, List

import structlog

logger = structlog.get_logger(__name__)

SURVEY_CREATED = "survey_created"
RATING_SUBMITTED = "rating_submitted"
SURVEY_ENDED = "survey_ended"
REVEAL_REQUESTED = "reveal_requested"
ITEM_REVEALED = "item_revealed"
SURVEY_FINALIZED = "survey_finalized"

Subscriber = Callable[[Dict[str, Any]], None]


def fingerprint(identity: Any) -> str:
    return hashlib.sha256(str(identity).encode("utf-8")).hexdigest()


class BulletinBoard:
    def __init__(self):
        self._entries: List[Dict[str, Any]] = []
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def post(self, kind: str, **fields: Any) -> Dict[str, Any]:
        with self._lock:
            entry = {"seq": len(self._entries), "kind": kind, **fields}
            self._entries.append(entry)
        logger.info(kind, **fields)
        for callback in list(self._subscribers):
            try:
                callback(dict(entry))
            except Exception:
                # a subscriber must never undo a committed ledger operation
                logger.exception("subscriber_failed", kind=kind, seq=entry["seq"])
        return entry

    def entries(self, since: int = 0) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self._entries[since:]]

    def __len__(self) -> int:
        return len(self._entries)
