"""Error taxonomy for the survey ledger.

Every failure is scoped to the single operation that raised it. The category
bases also derive from the builtin exception a caller would naturally catch
for that concern, so ``except ValueError`` keeps working for validation
failures and ``except PermissionError`` for authorization failures.
"""

from __future__ import annotations


class SurveyError(Exception):
    """Base class for all ledger errors. ``code`` is stable across releases."""

    code = "survey_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)


## --- validation ------------------------------------------------------------


class ValidationError(SurveyError, ValueError):
    code = "validation_error"


class InvalidItemCount(ValidationError):
    """A survey needs between 2 and 5 item names."""

    code = "invalid_item_count"


class InvalidDuration(ValidationError):
    """Survey duration must be a positive number of seconds."""

    code = "invalid_duration"


class InvalidItemIndex(ValidationError, IndexError):
    """Item index is out of range for this survey."""

    code = "invalid_item_index"


class ArityMismatch(ValidationError):
    """One ciphertext and one proof are required per survey item."""

    code = "arity_mismatch"


class MalformedPlaintext(ValidationError):
    """Decryption result does not hold a valid plaintext word."""

    code = "malformed_plaintext"


## --- authorization ---------------------------------------------------------


class AuthorizationError(SurveyError, PermissionError):
    code = "authorization_error"


class NotAdmin(AuthorizationError):
    """Only the survey admin may do this."""

    code = "not_admin"


class NotYetExpired(AuthorizationError):
    """The survey deadline has not passed yet."""

    code = "not_yet_expired"


class NotAuthorized(AuthorizationError):
    """Identity is not allowed to decrypt this ciphertext."""

    code = "not_authorized"


## --- lookups ---------------------------------------------------------------


class NotFound(SurveyError, LookupError):
    code = "not_found"


class SurveyNotFound(NotFound):
    """No survey with this id."""

    code = "survey_not_found"


class UnknownHandle(NotFound):
    """No ciphertext with this handle."""

    code = "unknown_handle"


## --- state conflicts -------------------------------------------------------


class StateConflict(SurveyError):
    code = "state_conflict"


class DuplicateSubmission(StateConflict):
    """Already submitted ratings for this survey."""

    code = "duplicate_submission"


class SurveyNotOpen(StateConflict):
    """Survey is not accepting ratings."""

    code = "survey_not_open"


class AlreadyEnded(StateConflict):
    """Survey has already ended."""

    code = "already_ended"


class SurveyStillOpen(StateConflict):
    """Survey is still open."""

    code = "survey_still_open"


class ItemAlreadyRevealed(StateConflict):
    """Item sum has already been revealed."""

    code = "item_already_revealed"


class RevealAlreadyPending(StateConflict):
    """A reveal for this item is already pending."""

    code = "reveal_already_pending"


class NothingToReveal(StateConflict):
    """No ratings were submitted, there is no encrypted sum to reveal."""

    code = "nothing_to_reveal"


class AlreadyFinalized(StateConflict):
    """Survey is already finalized."""

    code = "already_finalized"


class IncompleteReveal(StateConflict):
    """Not every item sum has been revealed."""

    code = "incomplete_reveal"


class NotRevealed(StateConflict):
    """Item sum has not been revealed."""

    code = "not_revealed"


class NoEncryptedSum(StateConflict):
    """No ratings have been accumulated for this item."""

    code = "no_encrypted_sum"


## --- external dependency ---------------------------------------------------


class ExternalDependencyError(SurveyError):
    code = "external_dependency_error"


class InvalidCiphertextProof(ExternalDependencyError):
    """Ciphertext validity proof was rejected."""

    code = "invalid_ciphertext_proof"


## --- correlator ------------------------------------------------------------


class UnknownRequest(SurveyError, LookupError):
    """Decryption request id was never issued."""

    code = "unknown_request"
