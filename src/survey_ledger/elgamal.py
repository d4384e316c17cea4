"""Exponential ElGamal over the RFC 2409 Oakley group 2 prime.

A rating m is encrypted as (g^r, y^r * g^m). Multiplying two ciphertexts
component-wise yields an encryption of the sum of their plaintexts, which is
all the survey ledger needs. Decryption recovers g^m and then m itself with a
bounded discrete log, so plaintext sums must stay small.

Two zero-knowledge proofs are provided, both made non-interactive with
Fiat-Shamir over SHA-256:
- a disjunctive Chaum-Pedersen proof that a ciphertext encrypts one value out
  of an allowed set (the rating scale)
- a Chaum-Pedersen proof that a decryption was done with the key matching the
  public key
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from math import ceil, isqrt
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

Ciphertext = Tuple[int, int]

# RFC 2409 1024-bit MODP Group (Oakley Group 2) prime p
# Source for prime: https://datatracker.ietf.org/doc/html/rfc2409#section-6.2
_P_HEX = (
    "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD1"
    "29024E088A67CC74020BBEA63B139B22514A08798E3404DD"
    "EF9519B3CD3A431B302B0A6DF25F14374FE1356D6D51C245"
    "E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
    "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE65381"
    "FFFFFFFFFFFFFFFF"
)


@dataclass(frozen=True)
class ElGamalParams:
    """ElGamal group params

    Attributes
    - p: safe prime modulus
    - q: large prime such that p = 2q + 1
    - g: generator of the subgroup of order q (here: g=2)
    """

    p: int
    q: int
    g: int


@dataclass(frozen=True)
class ElGamalPublicKey:
    """ElGamal public key: y = g^x mod p"""

    params: ElGamalParams
    y: int


@dataclass(frozen=True)
class ElGamalPrivateKey:
    """ElGamal private key: secret exponent x in [1..q-1]"""

    params: ElGamalParams
    x: int

    def public_key(self) -> ElGamalPublicKey:
        return ElGamalPublicKey(params=self.params, y=pow(self.params.g, self.x, self.params.p))


def elgamal_params_default() -> ElGamalParams:
    """Return default RFC 2409 group-2 parameters

    The group is a safe prime with generator g=2. We compute q = (p-1)//2.
    Since p = 7 mod 8, 2 is a quadratic residue and generates the order-q subgroup.
    """

    p = int(_P_HEX, 16)
    q = (p - 1) // 2
    g = 2

    return ElGamalParams(p=p, q=q, g=g)


def _rand_scalar(q: int) -> int:
    """Return a random scalar in [1 to q-1]"""

    return secrets.randbelow(q - 1) + 1


def elgamal_keygen(params: Optional[ElGamalParams] = None) -> Tuple[ElGamalPublicKey, ElGamalPrivateKey]:
    if params is None:
        params = elgamal_params_default()
    x = _rand_scalar(params.q)
    y = pow(params.g, x, params.p)
    return ElGamalPublicKey(params=params, y=y), ElGamalPrivateKey(params=params, x=x)


def in_subgroup(params: ElGamalParams, value: int) -> bool:
    """True when value is an element of the order-q subgroup of Z_p*."""
    return isinstance(value, int) and 1 <= value < params.p and pow(value, params.q, params.p) == 1


def elgamal_encrypt(pub: ElGamalPublicKey, m: int, r: Optional[int] = None) -> Ciphertext:
    """Encrypt a small non-negative integer using exponent encoding

    Args
    - pub: public key
    - m: plaintext, 0 <= m < q
    - r: optional randomness (for testing); sampled uniformly in [1 to q-1] if None

    Returns: tuple (c1, c2)
    """

    params = pub.params
    if not 0 <= m < params.q:
        raise ValueError("plaintext out of range")
    if r is None:
        r = _rand_scalar(params.q)
    c1 = pow(params.g, r, params.p)
    c2 = (pow(pub.y, r, params.p) * pow(params.g, m, params.p)) % params.p
    return c1, c2


def ciphertext_mul(a: Ciphertext, b: Ciphertext, p: int) -> Ciphertext:
    """Homomorphic addition of two ciphertexts: Enc(m1) * Enc(m2) = Enc(m1 + m2)"""

    return (a[0] * b[0]) % p, (a[1] * b[1]) % p


def _shared_secret(priv: ElGamalPrivateKey, c: Ciphertext) -> int:
    return pow(c[0], priv.x, priv.params.p)


def decrypt_group_element(priv: ElGamalPrivateKey, c: Ciphertext) -> int:
    """Recover g^m from a ciphertext."""

    params = priv.params
    s = _shared_secret(priv, c)
    return (c[1] * pow(s, -1, params.p)) % params.p


def discrete_log_small(base: int, value: int, p: int, max_k: int) -> Optional[int]:
    """Brute-force discrete log for small ranges (0 to max_k)"""

    cur = 1
    if value == 1:
        return 0
    for k in range(1, max_k + 1):
        cur = (cur * base) % p
        if cur == value:
            return k
    return None


def discrete_log_bsgs(base: int, value: int, p: int, max_k: int) -> Optional[int]:
    """Baby-step giant-step discrete log: find k <= max_k with base^k = value (mod p)."""

    if value == 1:
        return 0
    m = isqrt(max_k) + 1

    # baby steps: base^j -> j for j in [0, m)
    baby: Dict[int, int] = {}
    cur = 1
    for j in range(m):
        baby.setdefault(cur, j)
        cur = (cur * base) % p

    factor = pow(pow(base, m, p), -1, p)
    gamma = value
    for i in range(ceil(max_k / m) + 1):
        if gamma in baby:
            k = i * m + baby[gamma]
            return k if k <= max_k else None
        gamma = (gamma * factor) % p
    return None


def discrete_log(base: int, value: int, p: int, max_k: int) -> Optional[int]:
    """Choose an appropriate discrete-log routine based on max_k."""
    if max_k <= 64:
        return discrete_log_small(base, value, p, max_k)
    return discrete_log_bsgs(base, value, p, max_k)


def elgamal_decrypt(priv: ElGamalPrivateKey, c: Ciphertext, max_m: int) -> Optional[int]:
    """Decrypt a ciphertext whose plaintext is known to lie in [0, max_m].

    Returns None when the plaintext is out of that range.
    """

    m_elem = decrypt_group_element(priv, c)
    return discrete_log(priv.params.g, m_elem, priv.params.p, max_m)


## --- Fiat-Shamir -----------------------------------------------------------


def hash_to_scalar(q: int, elements: Iterable[Any]) -> int:
    """SHA-256 over the '|'-separated decimal form of elements, reduced mod q."""
    h = hashlib.sha256()
    for e in elements:
        h.update(str(e).encode())
        h.update(b"|")
    return int.from_bytes(h.digest(), "big") % q


## --- range proof (disjunctive Chaum-Pedersen) -------------------------------


def prove_range(
    pub: ElGamalPublicKey, ciphertext: Ciphertext, plaintext: int, r: int, choices: Sequence[int]
) -> Dict[str, Any]:
    """Prove that ciphertext encrypts one of `choices` without saying which

    Args
    - pub: public key the ciphertext was made under
    - ciphertext: (c1, c2) = (g^r, y^r * g^plaintext)
    - plaintext: the encrypted value, must be one of choices
    - r: the encryption randomness
    - choices: the allowed plaintexts

    Returns: {"choices", "commitments", "e_vals", "z_vals"}
    """

    params = pub.params
    p, q, g, y = params.p, params.q, params.g, pub.y
    c1, c2 = ciphertext
    choices = list(choices)
    if plaintext not in choices:
        raise ValueError("plaintext is not one of the allowed choices")
    real = choices.index(plaintext)

    commitments: List[Tuple[int, int]] = []
    e_vals = [0] * len(choices)
    z_vals = [0] * len(choices)
    w = _rand_scalar(q)
    for i, m in enumerate(choices):
        if i == real:
            commitments.append((pow(g, w, p), pow(y, w, p)))
            continue
        # simulate the branches we cannot prove
        e_sim = _rand_scalar(q)
        z_sim = _rand_scalar(q)
        shifted = (c2 * pow(g, -m, p)) % p
        a1 = (pow(g, z_sim, p) * pow(c1, -e_sim, p)) % p
        a2 = (pow(y, z_sim, p) * pow(shifted, -e_sim, p)) % p
        commitments.append((a1, a2))
        e_vals[i] = e_sim
        z_vals[i] = z_sim

    e = _range_challenge(pub, ciphertext, choices, commitments)
    e_real = (e - sum(e_vals)) % q
    e_vals[real] = e_real
    z_vals[real] = (w + e_real * r) % q
    return {
        "choices": choices,
        "commitments": commitments,
        "e_vals": e_vals,
        "z_vals": z_vals,
    }


def verify_range(pub: ElGamalPublicKey, ciphertext: Ciphertext, proof: Dict[str, Any], choices: Sequence[int]) -> bool:
    """Check a proof produced by prove_range against the expected choices."""

    params = pub.params
    p, q, g, y = params.p, params.q, params.g, pub.y
    c1, c2 = ciphertext
    choices = list(choices)
    if not (in_subgroup(params, c1) and in_subgroup(params, c2)):
        return False
    if list(proof.get("choices", [])) != choices:
        return False
    commitments = [tuple(c) for c in proof.get("commitments", [])]
    e_vals = list(proof.get("e_vals", []))
    z_vals = list(proof.get("z_vals", []))
    if not len(commitments) == len(e_vals) == len(z_vals) == len(choices):
        return False

    for m, (a1, a2), e_i, z_i in zip(choices, commitments, e_vals, z_vals):
        if not (in_subgroup(params, a1) and in_subgroup(params, a2)):
            return False
        shifted = (c2 * pow(g, -m, p)) % p
        if pow(g, z_i % q, p) != (a1 * pow(c1, e_i % q, p)) % p:
            return False
        if pow(y, z_i % q, p) != (a2 * pow(shifted, e_i % q, p)) % p:
            return False

    e = _range_challenge(pub, ciphertext, choices, commitments)
    return sum(e_vals) % q == e


def _range_challenge(
    pub: ElGamalPublicKey, ciphertext: Ciphertext, choices: List[int], commitments: List[Tuple[int, int]]
) -> int:
    params = pub.params
    flat: List[Any] = [params.p, params.g, pub.y, ciphertext[0], ciphertext[1]]
    flat.extend(choices)
    for a1, a2 in commitments:
        flat.extend([a1, a2])
    return hash_to_scalar(params.q, flat)


def encrypt_with_proof(
    pub: ElGamalPublicKey, m: int, choices: Sequence[int]
) -> Tuple[Ciphertext, Dict[str, Any]]:
    """Encrypt m and attach a range proof over choices."""

    r = _rand_scalar(pub.params.q)
    ciphertext = elgamal_encrypt(pub, m, r)
    return ciphertext, prove_range(pub, ciphertext, m, r, choices)


## --- verifiable decryption ---------------------------------------------------


def generate_decryption_proof(priv: ElGamalPrivateKey, ciphertext: Ciphertext) -> Dict[str, Any]:
    """Generate a Chaum-Pedersen proof that s = c1^x where y = g^x.

    Returns {"c1", "s", "a1", "a2", "e", "z"}
    """

    params = priv.params
    pub = priv.public_key()
    c1 = ciphertext[0]
    s = _shared_secret(priv, ciphertext)
    t = _rand_scalar(params.q)
    a1 = pow(params.g, t, params.p)
    a2 = pow(c1, t, params.p)
    e = hash_to_scalar(params.q, [params.p, params.g, pub.y, c1, s, a1, a2])
    z = (t - e * priv.x) % params.q
    return {"c1": c1, "s": s, "a1": a1, "a2": a2, "e": e, "z": z}


def verify_decryption_proof(pub: ElGamalPublicKey, proof: Dict[str, Any]) -> bool:
    params = pub.params
    try:
        c1, s, a1, a2, e, z = (proof[k] for k in ("c1", "s", "a1", "a2", "e", "z"))
    except KeyError:
        return False
    if pow(params.g, z, params.p) * pow(pub.y, e, params.p) % params.p != a1:
        return False
    if pow(c1, z, params.p) * pow(s, e, params.p) % params.p != a2:
        return False
    return hash_to_scalar(params.q, [params.p, params.g, pub.y, c1, s, a1, a2]) == e


def verify_decryption(pub: ElGamalPublicKey, ciphertext: Ciphertext, m: int, proof: Dict[str, Any]) -> bool:
    """Check that m is the plaintext of ciphertext given a decryption proof."""

    params = pub.params
    if proof.get("c1") != ciphertext[0] or not verify_decryption_proof(pub, proof):
        return False
    m_elem = (ciphertext[1] * pow(proof["s"], -1, params.p)) % params.p
    return m_elem == pow(params.g, m, params.p)
