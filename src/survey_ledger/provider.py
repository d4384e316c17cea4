"""Encryption provider: the homomorphic capability the ledger consumes.

The ledger never touches group elements. It holds opaque handles and asks the
provider to combine them, to grant decryption rights on them and to queue
them for decryption. ``ElGamalProvider`` is the reference implementation on
top of ``survey_ledger.elgamal``; anything honouring ``EncryptionProvider``
can replace it.

Opaque inputs travel as canonical JSON bytes:
- ciphertext: {"c1": int, "c2": int}
- proof: the range proof dict produced by ``elgamal.prove_range``
"""

from __future__ import annotations

import json
import secrets
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Sequence, Set, Tuple

import structlog

from . import elgamal
from .errors import InvalidCiphertextProof, UnknownHandle

logger = structlog.get_logger(__name__)

DecryptionCallback = Callable[[str, bytes], Any]


class EncryptionProvider(Protocol):
    def from_opaque_input(self, ciphertext: bytes, proof: bytes) -> str: ...

    def add(self, a: str, b: str) -> str: ...

    def authorize(self, handle: str, identity: str) -> None: ...

    def is_authorized(self, handle: str, identity: str) -> bool: ...

    def request_decryption(self, handle: str, callback: DecryptionCallback) -> str: ...

    def release(self, handle: str) -> None: ...


@dataclass(frozen=True)
class DecryptionJob:
    """A queued decryption: the oracle answers by calling callback(request_id, plaintext)."""

    request_id: str
    handle: str
    callback: DecryptionCallback = field(compare=False, repr=False)


## --- wire codec ------------------------------------------------------------


def _dumps(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def encode_ciphertext(ciphertext: elgamal.Ciphertext) -> bytes:
    return _dumps({"c1": ciphertext[0], "c2": ciphertext[1]})


def decode_ciphertext(data: bytes) -> elgamal.Ciphertext:
    """Parse ciphertext bytes, raising ValueError on anything malformed."""

    try:
        obj = json.loads(data)
    except (TypeError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError("ciphertext is not valid JSON") from e
    if not isinstance(obj, dict) or not (_is_int(obj.get("c1")) and _is_int(obj.get("c2"))):
        raise ValueError("ciphertext must hold integer c1 and c2")
    return obj["c1"], obj["c2"]


def encode_proof(proof: Dict[str, Any]) -> bytes:
    return _dumps(proof)


def decode_proof(data: bytes) -> Dict[str, Any]:
    try:
        obj = json.loads(data)
    except (TypeError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError("proof is not valid JSON") from e
    if not isinstance(obj, dict):
        raise ValueError("proof must be a JSON object")
    for key in ("choices", "e_vals", "z_vals"):
        values = obj.get(key)
        if not isinstance(values, list) or not all(_is_int(v) for v in values):
            raise ValueError(f"proof field {key!r} must be a list of integers")
    commitments = obj.get("commitments")
    if not isinstance(commitments, list) or not all(
        isinstance(c, list) and len(c) == 2 and all(_is_int(v) for v in c) for c in commitments
    ):
        raise ValueError("proof commitments must be integer pairs")
    return obj


def seal_rating(pub: elgamal.ElGamalPublicKey, rating: int, choices: Sequence[int]) -> Tuple[bytes, bytes]:
    """Client-side helper: encrypt one rating and prove it lies in choices.

    Returns (ciphertext_bytes, proof_bytes) ready for ``submit_ratings``.
    """

    ciphertext, proof = elgamal.encrypt_with_proof(pub, rating, choices)
    return encode_ciphertext(ciphertext), encode_proof(proof)


def seal_ratings(
    pub: elgamal.ElGamalPublicKey, ratings: Sequence[int], choices: Sequence[int]
) -> Tuple[List[bytes], List[bytes]]:
    sealed = [seal_rating(pub, r, choices) for r in ratings]
    return [c for c, _ in sealed], [p for _, p in sealed]


## --- reference provider ----------------------------------------------------


class ElGamalProvider:
    """In-process ElGamal provider.

    Ciphertexts live in a handle table; the ACL records which identities may
    decrypt each handle; decryption requests wait in a FIFO queue until the
    oracle drains them.
    """

    def __init__(self, pub: elgamal.ElGamalPublicKey, rating_range: Sequence[int] = range(1, 6)):
        self.pub = pub
        self.choices = list(rating_range)
        self._ciphertexts: Dict[str, elgamal.Ciphertext] = {}
        self._acl: Dict[str, Set[str]] = {}
        self._jobs: Deque[DecryptionJob] = deque()
        self._lock = threading.Lock()

    def _store(self, ciphertext: elgamal.Ciphertext) -> str:
        handle = secrets.token_hex(16)
        with self._lock:
            self._ciphertexts[handle] = ciphertext
            self._acl[handle] = set()
        return handle

    def ciphertext(self, handle: str) -> elgamal.Ciphertext:
        try:
            return self._ciphertexts[handle]
        except KeyError:
            raise UnknownHandle(f"unknown ciphertext handle {handle!r}") from None

    def from_opaque_input(self, ciphertext: bytes, proof: bytes) -> str:
        """Verify the validity proof and turn the input into a handle."""

        try:
            ct = decode_ciphertext(ciphertext)
            pr = decode_proof(proof)
        except ValueError as e:
            raise InvalidCiphertextProof(str(e)) from e
        if not elgamal.verify_range(self.pub, ct, pr, self.choices):
            raise InvalidCiphertextProof("ciphertext validity proof rejected")
        return self._store(ct)

    def add(self, a: str, b: str) -> str:
        total = elgamal.ciphertext_mul(self.ciphertext(a), self.ciphertext(b), self.pub.params.p)
        return self._store(total)

    def authorize(self, handle: str, identity: str) -> None:
        self.ciphertext(handle)
        with self._lock:
            self._acl[handle].add(identity)

    def is_authorized(self, handle: str, identity: str) -> bool:
        return identity in self._acl.get(handle, ())

    def request_decryption(self, handle: str, callback: DecryptionCallback) -> str:
        self.ciphertext(handle)
        request_id = secrets.token_hex(16)
        with self._lock:
            self._jobs.append(DecryptionJob(request_id=request_id, handle=handle, callback=callback))
        logger.info("decryption_requested", request_id=request_id)
        return request_id

    def release(self, handle: str) -> None:
        """Forget a handle nothing refers to any more. Unknown handles are ignored."""
        with self._lock:
            self._ciphertexts.pop(handle, None)
            self._acl.pop(handle, None)

    def take_jobs(self, limit: Optional[int] = None) -> List[DecryptionJob]:
        """Pop up to limit queued jobs, oldest first."""

        with self._lock:
            n = len(self._jobs) if limit is None else min(limit, len(self._jobs))
            return [self._jobs.popleft() for _ in range(n)]

    @property
    def queued(self) -> int:
        return len(self._jobs)

    @property
    def stored(self) -> int:
        return len(self._ciphertexts)
