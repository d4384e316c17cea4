"""survey_ledger - confidential product-satisfaction surveys

Respondents submit encrypted ratings; the ledger only ever holds ciphertext
handles and their homomorphic per-item sums. Sums are revealed item by item
through an asynchronous decryption oracle once a survey has ended.
"""

from .correlator import ApplyOutcome
from .ledger import Survey, SurveyLedger
from .lifecycle import SurveyState

__all__ = ["ApplyOutcome", "Survey", "SurveyLedger", "SurveyState"]
