import pytest

from survey_ledger import identity


def test_issue_and_verify_token():
    key = b"tokentokentokentoktokentoktoktok"
    token_hex, mac_hex = identity.issue_token(key)
    assert isinstance(token_hex, str) and isinstance(mac_hex, str)
    assert identity.verify_token(key, token_hex, mac_hex) is True


def test_tokens_are_fresh():
    key = b"k" * 32
    assert identity.issue_token(key)[0] != identity.issue_token(key)[0]


def test_verify_rejects_wrong_key_and_garbage():
    key = b"k" * 32
    token_hex, mac_hex = identity.issue_token(key)
    assert identity.verify_token(b"x" * 32, token_hex, mac_hex) is False
    assert identity.verify_token(key, "deadbeef", "00") is False
    assert identity.verify_token(key, "not hex", mac_hex) is False
    assert identity.verify_token(key, "", mac_hex) is False
    assert identity.verify_token(key, token_hex, None) is False


def test_issue_requires_bytes_key():
    with pytest.raises(TypeError):
        identity.issue_token("not-bytes")


def test_verify_accepts_only_the_issued_spelling():
    key = b"k" * 32
    token_hex, mac_hex = identity.issue_token(key)
    spaced = " ".join(token_hex[i:i + 2] for i in range(0, len(token_hex), 2))
    if token_hex.upper() != token_hex:
        assert identity.verify_token(key, token_hex.upper(), mac_hex) is False
    assert identity.verify_token(key, spaced, mac_hex) is False
    assert identity.verify_token(key, " " + token_hex, mac_hex) is False
