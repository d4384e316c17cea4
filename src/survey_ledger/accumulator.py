"""Homomorphic accumulation of encrypted ratings."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Sequence

from .provider import DecryptionCallback, EncryptionProvider


class HomomorphicAccumulator:
    """Keeps per-item running sums as provider handles.

    The first rating for an item becomes its sum directly, so no encrypted
    zero is ever needed. Every resulting sum is decryptable by the ledger
    (to request a reveal) and by the survey admin.
    """

    def __init__(self, provider: EncryptionProvider, identity: str):
        self.provider = provider
        self.identity = identity

    def accumulate(self, current: Optional[str], incoming: str, admin: str) -> str:
        total = incoming if current is None else self.provider.add(current, incoming)
        self.provider.authorize(total, self.identity)
        self.provider.authorize(total, admin)
        return total

    def accumulate_all(
        self, current: Mapping[int, str], incoming: Sequence[str], admin: str
    ) -> Dict[int, str]:
        """New sums for every item. Does not touch ``current``."""
        return {i: self.accumulate(current.get(i), h, admin) for i, h in enumerate(incoming)}

    def discard(self, handles: Iterable[str]) -> None:
        """Release handles that no survey sum refers to any more."""
        for handle in handles:
            self.provider.release(handle)

    def request_reveal(self, handle: str, callback: DecryptionCallback) -> str:
        return self.provider.request_decryption(handle, callback)
