import pytest

from survey_ledger import lifecycle
from survey_ledger.errors import AlreadyEnded, IncompleteReveal, NotYetExpired, SurveyNotOpen
from survey_ledger.ledger import Survey
from survey_ledger.lifecycle import SurveyState


def _survey(**overrides):
    fields = dict(
        id=0,
        title="t",
        description="d",
        item_names=("A", "B"),
        deadline=100.0,
        admin="admin",
        created_at=0.0,
    )
    fields.update(overrides)
    return Survey(**fields)


def test_states():
    s = _survey()
    assert lifecycle.state_of(s) is SurveyState.OPEN
    s.open = False
    assert lifecycle.state_of(s) is SurveyState.ENDED
    s.finalized = True
    assert lifecycle.state_of(s) is SurveyState.FINALIZED


def test_accepting_closes_at_deadline():
    s = _survey()
    lifecycle.ensure_accepting(s, 99.9)
    with pytest.raises(SurveyNotOpen):
        lifecycle.ensure_accepting(s, 100.0)


def test_end_exactly_at_deadline():
    s = _survey()
    with pytest.raises(NotYetExpired):
        lifecycle.end(s, 99.0)
    lifecycle.end(s, 100.0)
    assert s.open is False
    with pytest.raises(AlreadyEnded):
        lifecycle.end(s, 200.0)


def test_finalize_needs_every_item():
    s = _survey(open=False, responses=1)
    s.decrypted_sums[0] = 3
    with pytest.raises(IncompleteReveal):
        lifecycle.finalize(s, "admin")
    s.decrypted_sums[1] = 0
    lifecycle.finalize(s, "admin")
    assert s.finalized is True
