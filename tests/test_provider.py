import pytest

from survey_ledger import elgamal
from survey_ledger.errors import InvalidCiphertextProof, UnknownHandle
from survey_ledger.provider import encode_ciphertext, encode_proof, seal_rating

from conftest import CHOICES


def test_from_opaque_input_accepts_valid_rating(keys, provider, oracle):
    pub, _ = keys
    ct, proof = seal_rating(pub, 4, CHOICES)
    handle = provider.from_opaque_input(ct, proof)
    assert isinstance(handle, str) and len(handle) == 32
    provider.authorize(handle, "admin")
    assert oracle.user_decrypt(handle, "admin") == 4


def test_from_opaque_input_rejects_garbage(provider):
    with pytest.raises(InvalidCiphertextProof):
        provider.from_opaque_input(b"not json", b"{}")
    with pytest.raises(InvalidCiphertextProof):
        provider.from_opaque_input(b'{"c1": 1}', b"{}")


def test_from_opaque_input_rejects_mismatched_proof(keys, provider):
    pub, _ = keys
    ct, _ = seal_rating(pub, 4, CHOICES)
    _, other_proof = seal_rating(pub, 4, CHOICES)
    with pytest.raises(InvalidCiphertextProof):
        provider.from_opaque_input(ct, other_proof)


def test_from_opaque_input_rejects_out_of_scale_rating(keys, provider):
    pub, _ = keys
    ct, proof = elgamal.encrypt_with_proof(pub, 7, [1, 7])
    with pytest.raises(InvalidCiphertextProof):
        provider.from_opaque_input(encode_ciphertext(ct), encode_proof(proof))


def test_add_is_homomorphic(keys, provider, oracle):
    pub, _ = keys
    a = provider.from_opaque_input(*seal_rating(pub, 2, CHOICES))
    b = provider.from_opaque_input(*seal_rating(pub, 5, CHOICES))
    total = provider.add(a, b)
    provider.authorize(total, "admin")
    assert oracle.user_decrypt(total, "admin") == 7


def test_unknown_handle(provider):
    with pytest.raises(UnknownHandle):
        provider.add("nope", "nope")
    with pytest.raises(UnknownHandle):
        provider.request_decryption("nope", lambda rid, pt: None)


def test_request_ids_are_unique_and_queued(keys, provider):
    pub, _ = keys
    handle = provider.from_opaque_input(*seal_rating(pub, 1, CHOICES))
    ids = {provider.request_decryption(handle, lambda rid, pt: None) for _ in range(5)}
    assert len(ids) == 5
    assert provider.queued == 5
    jobs = provider.take_jobs(limit=2)
    assert len(jobs) == 2 and provider.queued == 3
    assert all(j.handle == handle for j in jobs)


def test_failing_callback_leaves_later_jobs_queued(keys, provider, oracle):
    pub, _ = keys
    handle = provider.from_opaque_input(*seal_rating(pub, 3, CHOICES))
    received = []

    def broken(request_id, plaintext):
        raise RuntimeError("subscriber went away")

    provider.request_decryption(handle, broken)
    second = provider.request_decryption(handle, lambda rid, pt: received.append(rid))

    with pytest.raises(RuntimeError):
        oracle.process()
    assert provider.queued == 1
    assert oracle.process() == [second]
    assert received == [second]
