import pytest

from survey_ledger import elgamal


def test_aggregation_and_decryption_roundtrip(keys):
    pub, priv = keys
    ratings = [4, 3, 5, 1]

    total = None
    for m in ratings:
        ct = elgamal.elgamal_encrypt(pub, m)
        total = ct if total is None else elgamal.ciphertext_mul(total, ct, pub.params.p)

    assert elgamal.elgamal_decrypt(priv, total, max_m=100) == sum(ratings)


def test_decrypt_out_of_bound_returns_none(keys):
    pub, priv = keys
    ct = elgamal.elgamal_encrypt(pub, 500)
    assert elgamal.elgamal_decrypt(priv, ct, max_m=100) is None
    assert elgamal.elgamal_decrypt(priv, ct, max_m=1000) == 500


def test_decrypt_zero(keys):
    pub, priv = keys
    ct = elgamal.elgamal_encrypt(pub, 0)
    assert elgamal.elgamal_decrypt(priv, ct, max_m=10) == 0


def test_discrete_log_routines_agree():
    params = elgamal.elgamal_params_default()
    for k in (0, 1, 7, 63, 64, 65, 999):
        value = pow(params.g, k, params.p)
        assert elgamal.discrete_log_bsgs(params.g, value, params.p, 1000) == k
        assert elgamal.discrete_log(params.g, value, params.p, 1000) == k
    assert elgamal.discrete_log_small(params.g, pow(params.g, 5, params.p), params.p, 4) is None


def test_generator_in_subgroup():
    params = elgamal.elgamal_params_default()
    assert elgamal.in_subgroup(params, params.g)
    assert not elgamal.in_subgroup(params, 0)
    assert not elgamal.in_subgroup(params, params.p)


def test_range_proof_accepts_each_allowed_value(keys):
    pub, _ = keys
    choices = [1, 2, 3, 4, 5]
    for m in choices:
        ct, proof = elgamal.encrypt_with_proof(pub, m, choices)
        assert elgamal.verify_range(pub, ct, proof, choices) is True


def test_range_proof_cannot_be_built_outside_range(keys):
    pub, _ = keys
    with pytest.raises(ValueError):
        elgamal.encrypt_with_proof(pub, 6, [1, 2, 3, 4, 5])


def test_range_proof_rejects_other_ciphertext(keys):
    pub, _ = keys
    choices = [1, 2, 3, 4, 5]
    _, proof = elgamal.encrypt_with_proof(pub, 3, choices)
    other = elgamal.elgamal_encrypt(pub, 3)
    assert elgamal.verify_range(pub, other, proof, choices) is False


def test_range_proof_rejects_out_of_range_plaintext(keys):
    pub, _ = keys
    # a proof over the wider set does not verify against the rating scale
    ct, proof = elgamal.encrypt_with_proof(pub, 9, [1, 9])
    assert elgamal.verify_range(pub, ct, proof, [1, 2, 3, 4, 5]) is False


def test_range_proof_rejects_tampered_challenge(keys):
    pub, _ = keys
    choices = [1, 2, 3, 4, 5]
    ct, proof = elgamal.encrypt_with_proof(pub, 2, choices)
    proof["e_vals"][0] = (proof["e_vals"][0] + 1) % pub.params.q
    assert elgamal.verify_range(pub, ct, proof, choices) is False


def test_decryption_proof_roundtrip(keys):
    pub, priv = keys
    ct = elgamal.elgamal_encrypt(pub, 12)
    proof = elgamal.generate_decryption_proof(priv, ct)
    assert elgamal.verify_decryption_proof(pub, proof) is True
    assert elgamal.verify_decryption(pub, ct, 12, proof) is True
    assert elgamal.verify_decryption(pub, ct, 13, proof) is False


def test_decryption_proof_rejects_wrong_key(keys):
    pub, _ = keys
    _, other_priv = elgamal.elgamal_keygen(pub.params)
    ct = elgamal.elgamal_encrypt(pub, 3)
    proof = elgamal.generate_decryption_proof(other_priv, ct)
    assert elgamal.verify_decryption_proof(pub, proof) is False
