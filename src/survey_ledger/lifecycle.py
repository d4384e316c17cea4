"""Survey state machine: OPEN -> ENDED -> FINALIZED.

Items are revealed one by one while the survey is ENDED, so there is no
separate finalizing state. FINALIZED is terminal.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Hashable

from .errors import (
    AlreadyEnded,
    AlreadyFinalized,
    IncompleteReveal,
    NotAdmin,
    NotYetExpired,
    SurveyNotOpen,
    SurveyStillOpen,
)

if TYPE_CHECKING:
    from .ledger import Survey


class SurveyState(str, enum.Enum):
    OPEN = "open"
    ENDED = "ended"
    FINALIZED = "finalized"


def state_of(survey: "Survey") -> SurveyState:
    if survey.finalized:
        return SurveyState.FINALIZED
    if survey.open:
        return SurveyState.OPEN
    return SurveyState.ENDED


def ensure_accepting(survey: "Survey", now: float) -> None:
    """Ratings are accepted only while OPEN and before the deadline."""
    if state_of(survey) is not SurveyState.OPEN or now >= survey.deadline:
        raise SurveyNotOpen()


def end(survey: "Survey", now: float) -> None:
    """OPEN -> ENDED. Anyone may end a survey once its deadline has passed."""
    if state_of(survey) is not SurveyState.OPEN:
        raise AlreadyEnded()
    if now < survey.deadline:
        raise NotYetExpired()
    survey.open = False


def ensure_ended(survey: "Survey") -> None:
    if state_of(survey) is SurveyState.OPEN:
        raise SurveyStillOpen()


def finalize(survey: "Survey", caller: Hashable) -> None:
    """ENDED -> FINALIZED, admin only, every item revealed."""
    if survey.finalized:
        raise AlreadyFinalized()
    if caller != survey.admin:
        raise NotAdmin()
    ensure_ended(survey)
    if survey.responses == 0:
        # nothing was ever encrypted, every sum is publicly zero
        for i in range(survey.item_count):
            survey.decrypted_sums.setdefault(i, 0)
    if len(survey.decrypted_sums) != survey.item_count:
        raise IncompleteReveal()
    survey.finalized = True
