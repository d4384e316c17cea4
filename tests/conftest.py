import os
import sys

import pytest


# Ensure repository src directory is on sys.path for tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from survey_ledger import elgamal  # noqa: E402
from survey_ledger.ledger import SurveyLedger  # noqa: E402
from survey_ledger.oracle import DecryptionOracle  # noqa: E402
from survey_ledger.provider import ElGamalProvider, seal_ratings  # noqa: E402

DAY = 24 * 3600
CHOICES = [1, 2, 3, 4, 5]


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(scope="session")
def keys():
    return elgamal.elgamal_keygen()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider(keys):
    pub, _ = keys
    return ElGamalProvider(pub, CHOICES)


@pytest.fixture
def oracle(provider, keys):
    _, priv = keys
    return DecryptionOracle(provider, priv, max_plaintext=10_000)


@pytest.fixture
def ledger(provider, clock):
    return SurveyLedger(provider, identity="ledger", clock=clock)


@pytest.fixture
def seal(keys):
    """seal([4, 5]) -> (ciphertexts, proofs) for submit_ratings."""
    pub, _ = keys

    def _seal(ratings):
        return seal_ratings(pub, ratings, CHOICES)

    return _seal
