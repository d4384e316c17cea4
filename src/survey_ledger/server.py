"""Flask API for the encrypted survey ledger.

Endpoints:
- POST /auth -> issue an anonymous respondent token {"token", "mac"}
- GET /public-key -> group params, public key and rating scale for client-side encryption
- POST /surveys -> create a survey
- GET /surveys, /surveys/count, /surveys/<id> -> read surveys
- POST /surveys/<id>/ratings -> submit one encrypted rating per item
- POST /surveys/<id>/end -> end a survey after its deadline
- POST /surveys/<id>/items/<i>/reveal -> request decryption of one item sum
- POST /surveys/<id>/finalize -> admin finalizes once every item is revealed
- GET /surveys/<id>/results, POST /surveys/<id>/results/verify -> published results
- POST /oracle/process, POST /oracle/callback -> decryption oracle integration
- GET /events -> bulletin board

Requests that act as someone carry the token in X-Token and its MAC in X-Mac.
"""

from __future__ import annotations

import functools
import hmac
import secrets
import time
from typing import Any, Callable, Dict, Optional

import structlog
from flask import Blueprint, Flask, current_app, g, jsonify, request

from . import elgamal, errors, identity, results
from .config import Settings, get_settings
from .events import BulletinBoard
from .ledger import SurveyLedger
from .oracle import DecryptionOracle
from .provider import ElGamalProvider

logger = structlog.get_logger(__name__)

bp = Blueprint("survey_ledger", __name__)

_STATUS = [
    (errors.ValidationError, 400),
    (errors.AuthorizationError, 403),
    (errors.NotFound, 404),
    (errors.UnknownRequest, 404),
    (errors.StateConflict, 409),
    (errors.ExternalDependencyError, 422),
]


def _state() -> Dict[str, Any]:
    return current_app.extensions["survey_ledger"]


def _ledger() -> SurveyLedger:
    return _state()["ledger"]


def requires_token(view: Callable) -> Callable:
    """Reject the request unless X-Token / X-Mac verify; exposes the token as g.respondent."""

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        token = request.headers.get("X-Token", "")
        mac = request.headers.get("X-Mac", "")
        if not identity.verify_token(_state()["token_key"], token, mac):
            return jsonify({"error": "unauthenticated", "detail": "missing or invalid token"}), 401
        g.respondent = token
        return view(*args, **kwargs)

    return wrapper


@bp.app_errorhandler(errors.SurveyError)
def handle_survey_error(e: errors.SurveyError):
    status = next((code for cls, code in _STATUS if isinstance(e, cls)), 400)
    logger.info("request_rejected", error=e.code, status=status, path=request.path)
    return jsonify({"error": e.code, "detail": str(e)}), status


def _bad_request(detail: str):
    return jsonify({"error": "bad_request", "detail": detail}), 400


@bp.route("/auth", methods=["POST"])
def authenticate():
    """Issue a fresh anonymous token."""
    token_hex, mac_hex = identity.issue_token(_state()["token_key"])
    return jsonify({"token": token_hex, "mac": mac_hex})


@bp.route("/public-key", methods=["GET"])
def public_key():
    pub: elgamal.ElGamalPublicKey = _state()["oracle"].public_key
    provider: ElGamalProvider = _state()["provider"]
    return jsonify(
        {
            "p": hex(pub.params.p),
            "q": hex(pub.params.q),
            "g": pub.params.g,
            "y": hex(pub.y),
            "choices": provider.choices,
        }
    )


@bp.route("/surveys", methods=["POST"])
@requires_token
def create_survey():
    """Create a survey: expects {"title", "description", "items": [...], "duration_seconds"}."""
    data = request.get_json(silent=True) or {}
    items = data.get("items")
    duration = data.get("duration_seconds")
    if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
        return _bad_request("items must be a list of strings")
    survey_id = _ledger().create_survey(
        str(data.get("title", "")),
        str(data.get("description", "")),
        items,
        duration,
        admin=g.respondent,
    )
    return jsonify({"survey_id": survey_id}), 201


@bp.route("/surveys", methods=["GET"])
def list_surveys():
    return jsonify({"surveys": _ledger().list_surveys()})


@bp.route("/surveys/count", methods=["GET"])
def survey_count():
    return jsonify({"count": _ledger().get_survey_count()})


@bp.route("/surveys/<int:survey_id>", methods=["GET"])
def get_survey(survey_id: int):
    return jsonify(_ledger().get_survey(survey_id))


@bp.route("/surveys/<int:survey_id>/ratings", methods=["POST"])
@requires_token
def submit_ratings(survey_id: int):
    """Submit ratings: expects {"ciphertexts": [hex...], "proofs": [hex...]}."""
    data = request.get_json(silent=True) or {}
    try:
        ciphertexts = [bytes.fromhex(c) for c in data.get("ciphertexts") or []]
        proofs = [bytes.fromhex(p) for p in data.get("proofs") or []]
    except (TypeError, ValueError):
        return _bad_request("ciphertexts and proofs must be lists of hex strings")
    _ledger().submit_ratings(survey_id, ciphertexts, proofs, respondent=g.respondent)
    return jsonify({"status": "submitted"}), 201


@bp.route("/surveys/<int:survey_id>/submitted/<token>", methods=["GET"])
def has_submitted(survey_id: int, token: str):
    return jsonify({"submitted": _ledger().has_submitted(survey_id, token)})


@bp.route("/surveys/<int:survey_id>/end", methods=["POST"])
@requires_token
def end_survey(survey_id: int):
    _ledger().end_survey(survey_id, caller=g.respondent)
    return jsonify({"status": "ended"})


@bp.route("/surveys/<int:survey_id>/items/<int:item_index>/reveal", methods=["POST"])
@requires_token
def request_reveal(survey_id: int, item_index: int):
    request_id = _ledger().request_reveal(survey_id, item_index, caller=g.respondent)
    if _state()["settings"].ORACLE_AUTO_PROCESS:
        _state()["oracle"].process()
    return jsonify({"request_id": request_id}), 202


@bp.route("/surveys/<int:survey_id>/items/<int:item_index>/encrypted", methods=["GET"])
def encrypted_sum(survey_id: int, item_index: int):
    return jsonify({"handle": _ledger().get_encrypted_sum(survey_id, item_index)})


@bp.route("/surveys/<int:survey_id>/items/<int:item_index>/sum", methods=["GET"])
def decrypted_sum(survey_id: int, item_index: int):
    return jsonify({"sum": _ledger().get_decrypted_sum(survey_id, item_index)})


@bp.route("/surveys/<int:survey_id>/items/<int:item_index>/admin-sum", methods=["GET"])
@requires_token
def admin_sum(survey_id: int, item_index: int):
    """Direct decryption for identities authorized on the sum (the admin)."""
    handle = _ledger().get_encrypted_sum(survey_id, item_index)
    return jsonify({"sum": _state()["oracle"].user_decrypt(handle, g.respondent)})


@bp.route("/surveys/<int:survey_id>/finalize", methods=["POST"])
@requires_token
def finalize(survey_id: int):
    _ledger().finalize(survey_id, caller=g.respondent)
    return jsonify({"status": "finalized"})


@bp.route("/surveys/<int:survey_id>/results", methods=["GET"])
def get_results(survey_id: int):
    table, digest = results.publish_results(_ledger().get_survey(survey_id))
    return jsonify({"results": table, "hash": digest})


@bp.route("/surveys/<int:survey_id>/results/verify", methods=["POST"])
def verify_results(survey_id: int):
    data = request.get_json(silent=True) or {}
    pub_hash = data.get("hash")
    if not isinstance(pub_hash, str):
        return _bad_request("missing or invalid 'hash'")
    ok, details = results.verify_results(pub_hash, _ledger().get_survey(survey_id))
    return jsonify({"ok": ok, "details": details})


@bp.route("/oracle/process", methods=["POST"])
def oracle_process():
    """Let the oracle answer queued decryption requests."""
    delivered = _state()["oracle"].process()
    return jsonify({"delivered": delivered})


@bp.route("/oracle/transcripts/<request_id>", methods=["GET"])
def oracle_transcript(request_id: str):
    oracle: DecryptionOracle = _state()["oracle"]
    t = oracle.transcript(request_id)
    return jsonify({"plaintext": t["plaintext"], "verified": oracle.verify_transcript(request_id)})


@bp.route("/oracle/callback", methods=["POST"])
def oracle_callback():
    """Out-of-process oracle delivery: expects {"request_id", "plaintext": hex}."""
    expected = _state()["settings"].ORACLE_KEY
    presented = request.headers.get("X-Oracle-Key", "")
    if not expected or not hmac.compare_digest(expected.encode(), presented.encode("utf-8")):
        return jsonify({"error": "forbidden", "detail": "oracle key required"}), 403
    data = request.get_json(silent=True) or {}
    request_id = data.get("request_id")
    if not isinstance(request_id, str):
        return _bad_request("missing request_id")
    try:
        plaintext = bytes.fromhex(data.get("plaintext", ""))
    except (TypeError, ValueError):
        return _bad_request("plaintext must be hex")
    outcome = _ledger().apply_result(request_id, plaintext)
    return jsonify({"outcome": outcome.value})


@bp.route("/events", methods=["GET"])
def list_events():
    since = request.args.get("since", default=0, type=int)
    return jsonify({"events": _ledger().board.entries(max(since, 0))})


def create_app(settings: Optional[Settings] = None, clock: Optional[Callable[[], float]] = None) -> Flask:
    """Build an app around a fresh keypair, provider, oracle and ledger."""

    settings = settings or get_settings()
    pub, priv = elgamal.elgamal_keygen()
    provider = ElGamalProvider(pub, settings.rating_range)
    ledger = SurveyLedger(
        provider,
        identity=settings.LEDGER_IDENTITY,
        board=BulletinBoard(),
        clock=clock or time.time,
        reveal_requires_admin=settings.REVEAL_REQUIRES_ADMIN,
    )
    oracle = DecryptionOracle(provider, priv, max_plaintext=settings.MAX_DECRYPTABLE_SUM)

    if settings.TOKEN_KEY:
        token_key = bytes.fromhex(settings.TOKEN_KEY)
    else:
        token_key = secrets.token_bytes(32)
        logger.warning("token_key_generated", reason="TOKEN_KEY not set, tokens will not survive a restart")

    app = Flask(__name__)
    app.config["DEBUG"] = settings.DEBUG
    app.extensions["survey_ledger"] = {
        "settings": settings,
        "provider": provider,
        "ledger": ledger,
        "oracle": oracle,
        "token_key": token_key,
    }
    app.register_blueprint(bp)
    logger.info("app_created", app_name=settings.APP_NAME)
    return app


if __name__ == "__main__":
    _settings = get_settings()
    create_app(_settings).run(host=_settings.SERVER_HOST, port=_settings.SERVER_PORT, debug=_settings.DEBUG)
