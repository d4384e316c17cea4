"""Correlation between decryption requests and the items they reveal.

A reveal is message passing: the ledger issues a request to the provider,
records request_id -> (survey, item) here, and later the oracle calls back
with the request id and the plaintext. This table is how the callback finds
its target, and how a replayed or forged callback is told apart from a real
one:

- a request id never issued here is unknown (hard failure)
- a request id already applied is retired (harmless no-op)

Plaintexts arrive as one 32-byte big-endian word holding an unsigned 32-bit
value, the layout the oracle writes.
"""

from __future__ import annotations

import enum
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .errors import MalformedPlaintext, RevealAlreadyPending, UnknownRequest

PLAINTEXT_WIDTH = 32
PLAINTEXT_MAX = 2**32 - 1


class ApplyOutcome(str, enum.Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


@dataclass(frozen=True)
class PendingDecryption:
    request_id: str
    survey_id: int
    item_index: int
    requested_at: float = field(default_factory=time.time)


def encode_plaintext(value: int) -> bytes:
    if not 0 <= value <= PLAINTEXT_MAX:
        raise ValueError("plaintext does not fit in 32 bits")
    return value.to_bytes(PLAINTEXT_WIDTH, "big")


def decode_plaintext(payload: bytes) -> int:
    """Read the first word of payload. Trailing bytes are ignored."""
    if not isinstance(payload, (bytes, bytearray)) or len(payload) < PLAINTEXT_WIDTH:
        raise MalformedPlaintext(f"expected at least {PLAINTEXT_WIDTH} bytes")
    value = int.from_bytes(payload[:PLAINTEXT_WIDTH], "big")
    if value > PLAINTEXT_MAX:
        raise MalformedPlaintext("plaintext does not fit in 32 bits")
    return value


class DecryptionCorrelator:
    """request_id -> PendingDecryption, with a reverse index per (survey, item).

    The ledger mutates entries of a survey only while holding that survey's
    lock; the table lock keeps the shared dicts consistent across surveys.
    """

    def __init__(self):
        self._pending: Dict[str, PendingDecryption] = {}
        self._by_item: Dict[Tuple[int, int], str] = {}
        self._retired: Set[str] = set()
        self._lock = threading.Lock()

    def pending_for(self, survey_id: int, item_index: int) -> Optional[str]:
        return self._by_item.get((survey_id, item_index))

    def issue(self, survey_id: int, item_index: int, request_id: str, requested_at: Optional[float] = None) -> PendingDecryption:
        entry = PendingDecryption(
            request_id=request_id,
            survey_id=survey_id,
            item_index=item_index,
            requested_at=time.time() if requested_at is None else requested_at,
        )
        with self._lock:
            if (survey_id, item_index) in self._by_item:
                raise RevealAlreadyPending()
            if request_id in self._pending or request_id in self._retired:
                raise ValueError(f"request id {request_id!r} already used")
            self._pending[request_id] = entry
            self._by_item[(survey_id, item_index)] = request_id
        return entry

    def is_retired(self, request_id: str) -> bool:
        return request_id in self._retired

    def lookup(self, request_id: str) -> PendingDecryption:
        try:
            return self._pending[request_id]
        except KeyError:
            raise UnknownRequest() from None

    def retire(self, request_id: str) -> PendingDecryption:
        with self._lock:
            entry = self.lookup(request_id)
            del self._pending[request_id]
            self._by_item.pop((entry.survey_id, entry.item_index), None)
            self._retired.add(request_id)
        return entry

    def outstanding(self) -> List[PendingDecryption]:
        """Requests still waiting for the oracle, oldest first."""
        with self._lock:
            entries = list(self._pending.values())
        return sorted(entries, key=lambda e: e.requested_at)
