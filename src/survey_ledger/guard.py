"""One submission per respondent per survey.

Records are permanent. Callers that need the check and the record to be
atomic with other work (the ledger's accumulation step) hold their own lock
around both; the guard's lock only keeps its own table consistent.
"""

from __future__ import annotations

import threading
from collections import Counter
from typing import Hashable, Set, Tuple

from .errors import DuplicateSubmission


class SubmissionGuard:
    def __init__(self):
        self._records: Set[Tuple[int, Hashable]] = set()
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def has_submitted(self, survey_id: int, respondent: Hashable) -> bool:
        return (survey_id, respondent) in self._records

    def check(self, survey_id: int, respondent: Hashable) -> None:
        if self.has_submitted(survey_id, respondent):
            raise DuplicateSubmission()

    def check_and_record(self, survey_id: int, respondent: Hashable) -> None:
        """Insert the record, or raise DuplicateSubmission if it already exists."""
        key = (survey_id, respondent)
        with self._lock:
            if key in self._records:
                raise DuplicateSubmission()
            self._records.add(key)
            self._counts[survey_id] += 1

    record = check_and_record

    def count(self, survey_id: int) -> int:
        return self._counts[survey_id]
