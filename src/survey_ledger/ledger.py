"""The encrypted survey ledger.

Surveys are stored by integer id. Side tables hold submission records
(``SubmissionGuard``) and outstanding decryptions (``DecryptionCorrelator``).
Every state change runs inside the lock of the survey it touches, so no
partially applied operation is ever visible and conflicting operations fail
fast with a state-conflict error instead of waiting on each other. Only
handles are stored; no plaintext rating ever reaches the ledger.

Flow:
- create_survey puts a survey in OPEN
- submit_ratings verifies one ciphertext per item, folds them into the
  per-item encrypted sums and records the respondent, all or nothing
- end_survey moves OPEN -> ENDED once the deadline has passed
- request_reveal asks the provider to decrypt one item's sum
- apply_result (oracle callback) writes that sum, exactly once
- finalize moves ENDED -> FINALIZED when every sum is known
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

import structlog

from . import events, lifecycle
from .accumulator import HomomorphicAccumulator
from .correlator import ApplyOutcome, DecryptionCorrelator, PendingDecryption, decode_plaintext
from .errors import (
    ArityMismatch,
    InvalidDuration,
    InvalidItemCount,
    InvalidItemIndex,
    ItemAlreadyRevealed,
    NoEncryptedSum,
    NotAdmin,
    NothingToReveal,
    NotRevealed,
    RevealAlreadyPending,
    SurveyError,
    SurveyNotFound,
)
from .guard import SubmissionGuard
from .provider import EncryptionProvider

logger = structlog.get_logger(__name__)

MIN_ITEMS = 2
MAX_ITEMS = 5


@dataclass
class Survey:
    id: int
    title: str
    description: str
    item_names: Tuple[str, ...]
    deadline: float
    admin: Hashable
    created_at: float
    open: bool = True
    finalized: bool = False
    responses: int = 0
    # item index -> provider handle, present once the item has a rating
    encrypted_sums: Dict[int, str] = field(default_factory=dict)
    # item index -> revealed sum, absent until revealed (0 is a real sum)
    decrypted_sums: Dict[int, int] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def item_count(self) -> int:
        return len(self.item_names)

    @property
    def state(self) -> lifecycle.SurveyState:
        return lifecycle.state_of(self)

    def snapshot(self) -> Dict[str, Any]:
        """Public read-only view."""
        with self.lock:
            return {
                "id": self.id,
                "title": self.title,
                "description": self.description,
                "item_names": list(self.item_names),
                "item_count": self.item_count,
                "deadline": self.deadline,
                "created_at": self.created_at,
                "admin_fingerprint": events.fingerprint(self.admin),
                "open": self.open,
                "finalized": self.finalized,
                "state": self.state.value,
                "responses": self.responses,
                "encrypted_sums": [self.encrypted_sums.get(i) for i in range(self.item_count)],
                "decrypted_sums": [self.decrypted_sums.get(i) for i in range(self.item_count)],
            }


class SurveyLedger:
    def __init__(
        self,
        provider: EncryptionProvider,
        identity: str = "survey-ledger",
        board: Optional[events.BulletinBoard] = None,
        clock: Callable[[], float] = time.time,
        reveal_requires_admin: bool = False,
    ):
        self.provider = provider
        self.identity = identity
        self.board = board if board is not None else events.BulletinBoard()
        self.clock = clock
        self.reveal_requires_admin = reveal_requires_admin
        self.guard = SubmissionGuard()
        self.accumulator = HomomorphicAccumulator(provider, identity)
        self.correlator = DecryptionCorrelator()
        self._surveys: List[Survey] = []
        self._lock = threading.Lock()

    ## --- lookups -------------------------------------------------------------

    def _get(self, survey_id: int) -> Survey:
        if not isinstance(survey_id, int) or isinstance(survey_id, bool) or not 0 <= survey_id < len(self._surveys):
            raise SurveyNotFound(f"survey {survey_id!r} does not exist")
        return self._surveys[survey_id]

    @staticmethod
    def _check_index(survey: Survey, item_index: int) -> None:
        if not isinstance(item_index, int) or isinstance(item_index, bool) or not 0 <= item_index < survey.item_count:
            raise InvalidItemIndex(f"item index {item_index!r} out of range for survey {survey.id}")

    ## --- operations ----------------------------------------------------------

    def create_survey(
        self,
        title: str,
        description: str,
        item_names: Sequence[str],
        duration_seconds: float,
        admin: Hashable,
    ) -> int:
        names = tuple(item_names)
        if not MIN_ITEMS <= len(names) <= MAX_ITEMS:
            raise InvalidItemCount(f"got {len(names)} items, need {MIN_ITEMS}..{MAX_ITEMS}")
        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, (int, float)) or duration_seconds <= 0:
            raise InvalidDuration()

        now = self.clock()
        with self._lock:
            survey = Survey(
                id=len(self._surveys),
                title=title,
                description=description,
                item_names=names,
                deadline=now + duration_seconds,
                admin=admin,
                created_at=now,
            )
            self._surveys.append(survey)
        self.board.post(
            events.SURVEY_CREATED,
            survey_id=survey.id,
            item_count=survey.item_count,
            deadline=survey.deadline,
        )
        return survey.id

    def submit_ratings(
        self,
        survey_id: int,
        ciphertexts: Sequence[bytes],
        proofs: Sequence[bytes],
        respondent: Hashable,
    ) -> None:
        """Fold one encrypted rating per item into the survey's sums.

        Either every item sum is updated and the respondent recorded, or
        nothing changes at all.
        """

        survey = self._get(survey_id)
        ciphertexts, proofs = list(ciphertexts), list(proofs)
        if len(ciphertexts) != survey.item_count or len(proofs) != survey.item_count:
            raise ArityMismatch(
                f"survey {survey_id} has {survey.item_count} items, "
                f"got {len(ciphertexts)} ciphertexts and {len(proofs)} proofs"
            )

        # fail fast before the expensive proof checks
        lifecycle.ensure_accepting(survey, self.clock())
        self.guard.check(survey_id, respondent)

        incoming: List[str] = []
        try:
            for c, p in zip(ciphertexts, proofs):
                incoming.append(self.provider.from_opaque_input(c, p))

            with survey.lock:
                lifecycle.ensure_accepting(survey, self.clock())
                self.guard.check(survey_id, respondent)
                new_sums = self.accumulator.accumulate_all(survey.encrypted_sums, incoming, survey.admin)
                self.guard.check_and_record(survey_id, respondent)
                # inputs folded into an existing sum, and the sums they replaced
                superseded: List[str] = []
                for i, h in enumerate(incoming):
                    if i in survey.encrypted_sums:
                        superseded += [h, survey.encrypted_sums[i]]
                survey.encrypted_sums.update(new_sums)
                survey.responses += 1
                responses = survey.responses
        except SurveyError:
            self.accumulator.discard(incoming)
            raise
        self.accumulator.discard(superseded)

        self.board.post(
            events.RATING_SUBMITTED,
            survey_id=survey_id,
            respondent=events.fingerprint(respondent),
            responses=responses,
        )

    def end_survey(self, survey_id: int, caller: Optional[Hashable] = None) -> None:
        survey = self._get(survey_id)
        with survey.lock:
            lifecycle.end(survey, self.clock())
        self.board.post(
            events.SURVEY_ENDED,
            survey_id=survey_id,
            responses=survey.responses,
            ended_by=None if caller is None else events.fingerprint(caller),
        )

    def request_reveal(self, survey_id: int, item_index: int, caller: Optional[Hashable] = None) -> str:
        """Ask the oracle for one item's plaintext sum. Returns the request id."""

        survey = self._get(survey_id)
        self._check_index(survey, item_index)
        with survey.lock:
            if self.reveal_requires_admin and caller != survey.admin:
                raise NotAdmin()
            lifecycle.ensure_ended(survey)
            if item_index in survey.decrypted_sums:
                raise ItemAlreadyRevealed()
            if self.correlator.pending_for(survey_id, item_index) is not None:
                raise RevealAlreadyPending()
            handle = survey.encrypted_sums.get(item_index)
            if handle is None:
                raise NothingToReveal()
            request_id = self.accumulator.request_reveal(handle, self.apply_result)
            self.correlator.issue(survey_id, item_index, request_id, requested_at=self.clock())

        self.board.post(events.REVEAL_REQUESTED, survey_id=survey_id, item_index=item_index)
        return request_id

    def apply_result(self, request_id: str, plaintext: bytes) -> ApplyOutcome:
        """Oracle callback: write the decrypted sum for request_id, exactly once."""

        if self.correlator.is_retired(request_id):
            logger.info("result_already_applied", request_id=request_id)
            return ApplyOutcome.ALREADY_APPLIED
        entry = self.correlator.lookup(request_id)
        value = decode_plaintext(plaintext)
        survey = self._get(entry.survey_id)

        with survey.lock:
            if self.correlator.is_retired(request_id):
                logger.info("result_already_applied", request_id=request_id)
                return ApplyOutcome.ALREADY_APPLIED
            if entry.item_index in survey.decrypted_sums or survey.open:
                self.correlator.retire(request_id)
                logger.warning(
                    "result_discarded",
                    request_id=request_id,
                    survey_id=entry.survey_id,
                    item_index=entry.item_index,
                )
                return ApplyOutcome.ALREADY_APPLIED
            survey.decrypted_sums[entry.item_index] = value
            self.correlator.retire(request_id)

        self.board.post(
            events.ITEM_REVEALED,
            survey_id=entry.survey_id,
            item_index=entry.item_index,
            total=value,
        )
        return ApplyOutcome.APPLIED

    def finalize(self, survey_id: int, caller: Hashable) -> None:
        survey = self._get(survey_id)
        with survey.lock:
            lifecycle.finalize(survey, caller)
            totals = [survey.decrypted_sums[i] for i in range(survey.item_count)]
        self.board.post(events.SURVEY_FINALIZED, survey_id=survey_id, totals=totals, responses=survey.responses)

    ## --- read-only -----------------------------------------------------------

    def get_survey(self, survey_id: int) -> Dict[str, Any]:
        return self._get(survey_id).snapshot()

    def get_survey_count(self) -> int:
        return len(self._surveys)

    def list_surveys(self) -> List[Dict[str, Any]]:
        return [s.snapshot() for s in list(self._surveys)]

    def get_encrypted_sum(self, survey_id: int, item_index: int) -> str:
        survey = self._get(survey_id)
        self._check_index(survey, item_index)
        handle = survey.encrypted_sums.get(item_index)
        if handle is None:
            raise NoEncryptedSum()
        return handle

    def get_decrypted_sum(self, survey_id: int, item_index: int) -> int:
        survey = self._get(survey_id)
        self._check_index(survey, item_index)
        try:
            return survey.decrypted_sums[item_index]
        except KeyError:
            raise NotRevealed() from None

    def has_submitted(self, survey_id: int, respondent: Hashable) -> bool:
        self._get(survey_id)
        return self.guard.has_submitted(survey_id, respondent)

    def pending_reveals(self, survey_id: Optional[int] = None) -> List[PendingDecryption]:
        pending = self.correlator.outstanding()
        if survey_id is None:
            return pending
        return [p for p in pending if p.survey_id == survey_id]
