"""Reference runner that walks one survey through its whole lifecycle in-process.

Run this script from the repository root (with the package installed) to see
a small simulated survey: creation, encrypted submissions, a rejected double
submission, ending, oracle reveals, finalization and published results.
"""

import argparse

from survey_ledger import SurveyLedger, elgamal, errors, results
from survey_ledger.config import get_settings
from survey_ledger.identity import issue_token
from survey_ledger.oracle import DecryptionOracle
from survey_ledger.provider import ElGamalProvider, seal_ratings


class _Clock:
    """Manual clock so the demo can jump past the deadline."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _print_heading(msg: str):
    print()
    print(msg)


def _print_kv(key: str, value):
    print(f"  {key}: {value}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--items", default="A,B", help="comma separated item names")
    parser.add_argument(
        "--ratings",
        nargs="+",
        default=["4,5", "3,4"],
        help="one comma separated rating list per respondent",
    )
    parser.add_argument("--hours", type=float, default=24)
    args = parser.parse_args()

    settings = get_settings()
    clock = _Clock()
    key = b"demo-token-key-demo-token-key-00"

    _print_heading("[Setup] keys, provider, oracle, ledger")
    pub, priv = elgamal.elgamal_keygen()
    provider = ElGamalProvider(pub, settings.rating_range)
    oracle = DecryptionOracle(provider, priv, max_plaintext=settings.MAX_DECRYPTABLE_SUM)
    ledger = SurveyLedger(provider, identity=settings.LEDGER_IDENTITY, clock=clock)
    _print_kv("rating scale", f"{settings.RATING_MIN}..{settings.RATING_MAX}")

    _print_heading("[Create] survey")
    admin, _ = issue_token(key)
    items = [s.strip() for s in args.items.split(",")]
    survey_id = ledger.create_survey("Demo survey", "Rate each item", items, int(args.hours * 3600), admin)
    _print_kv("survey_id", survey_id)
    _print_kv("items", items)

    _print_heading("[Submit] encrypted ratings")
    respondents = []
    for raw in args.ratings:
        ratings = [int(r) for r in raw.split(",")]
        respondent, _ = issue_token(key)
        ciphertexts, proofs = seal_ratings(pub, ratings, provider.choices)
        ledger.submit_ratings(survey_id, ciphertexts, proofs, respondent)
        respondents.append((respondent, ciphertexts, proofs))
        _print_kv("submitted", respondent[:8] + "..")

    if respondents:
        respondent, ciphertexts, proofs = respondents[0]
        try:
            ledger.submit_ratings(survey_id, ciphertexts, proofs, respondent)
        except errors.DuplicateSubmission as e:
            _print_kv("second submission rejected", e.code)

    _print_heading("[End] after the deadline")
    clock.now += args.hours * 3600
    ledger.end_survey(survey_id)
    _print_kv("state", ledger.get_survey(survey_id)["state"])

    _print_heading("[Reveal] one item at a time through the oracle")
    for i, name in enumerate(items):
        try:
            request_id = ledger.request_reveal(survey_id, i)
        except errors.NothingToReveal:
            _print_kv(name, "no ratings")
            continue
        _print_kv(f"{name} request", request_id[:8] + "..")
        oracle.process()
        _print_kv(f"{name} sum", ledger.get_decrypted_sum(survey_id, i))
        _print_kv(f"{name} proof", "OK" if oracle.verify_transcript(request_id) else "FAIL")

    _print_heading("[Finalize]")
    ledger.finalize(survey_id, admin)
    table, published_hash = results.publish_results(ledger.get_survey(survey_id))
    for item in table["items"]:
        avg = "-" if item["average"] is None else f"{item['average']:.2f}"
        _print_kv(item["name"], f"sum={item['sum']} average={avg}")
    _print_kv("hash", published_hash)

    ok, _ = results.verify_results(published_hash, ledger.get_survey(survey_id))
    print("\n[Verify] published results:", "OK" if ok else "MISMATCH")


if __name__ == "__main__":
    main()
