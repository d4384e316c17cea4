"""Decryption oracle.

Stands outside the ledger's trust boundary: it owns the private key, drains
the provider's decryption queue whenever it is told to, and answers each job
by invoking the callback registered with it. Nothing in the ledger waits for
it; a job it never processes simply leaves the item unrevealed.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from . import elgamal
from .correlator import encode_plaintext
from .errors import NotAuthorized, SurveyError, UnknownRequest
from .provider import ElGamalProvider

logger = structlog.get_logger(__name__)


class DecryptionOracle:
    def __init__(self, provider: ElGamalProvider, priv: elgamal.ElGamalPrivateKey, max_plaintext: int = 1_000_000):
        self.provider = provider
        self._priv = priv
        self.max_plaintext = max_plaintext
        self._transcripts: Dict[str, Dict[str, Any]] = {}

    @property
    def public_key(self) -> elgamal.ElGamalPublicKey:
        return self._priv.public_key()

    def _decrypt(self, handle: str) -> Optional[int]:
        return elgamal.elgamal_decrypt(self._priv, self.provider.ciphertext(handle), self.max_plaintext)

    def process(self, limit: Optional[int] = None) -> List[str]:
        """Answer up to limit queued jobs. Returns the request ids whose callback accepted the result."""

        delivered: List[str] = []
        taken = 0
        while limit is None or taken < limit:
            # one at a time, so a failing callback leaves later jobs queued
            jobs = self.provider.take_jobs(1)
            if not jobs:
                break
            job = jobs[0]
            taken += 1
            ciphertext = self.provider.ciphertext(job.handle)
            value = self._decrypt(job.handle)
            if value is None:
                logger.error("plaintext_out_of_range", request_id=job.request_id, bound=self.max_plaintext)
                continue
            self._transcripts[job.request_id] = {
                "ciphertext": ciphertext,
                "plaintext": value,
                "proof": elgamal.generate_decryption_proof(self._priv, ciphertext),
            }
            try:
                job.callback(job.request_id, encode_plaintext(value))
            except SurveyError as e:
                logger.warning("callback_rejected", request_id=job.request_id, error=e.code)
                continue
            delivered.append(job.request_id)
        if delivered:
            logger.info("oracle_delivered", count=len(delivered))
        return delivered

    def transcript(self, request_id: str) -> Dict[str, Any]:
        """Ciphertext, plaintext and decryption proof for an answered request."""
        try:
            return self._transcripts[request_id]
        except KeyError:
            raise UnknownRequest(f"no transcript for request {request_id!r}") from None

    def verify_transcript(self, request_id: str) -> bool:
        t = self.transcript(request_id)
        return elgamal.verify_decryption(self.public_key, t["ciphertext"], t["plaintext"], t["proof"])

    def user_decrypt(self, handle: str, identity: str) -> Optional[int]:
        """Decrypt directly for an identity the provider has authorized on handle."""

        if not self.provider.is_authorized(handle, identity):
            raise NotAuthorized(f"{identity!r} may not decrypt this ciphertext")
        return self._decrypt(handle)
