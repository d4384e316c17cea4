"""Published survey results and their digest.

Once a survey is finalized its per-item sums are public. ``publish_results``
turns them into a small results table plus the SHA-256 of its canonical JSON
encoding, so anyone holding the table can check it against the published
digest with ``verify_results``.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Tuple

from .errors import IncompleteReveal


def _digest(results: Dict[str, Any]) -> str:
    canonical = json.dumps(results, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def tabulate(survey: Dict[str, Any]) -> Dict[str, Any]:
    """Build the results table from a survey snapshot (``SurveyLedger.get_survey``).

    Averages are sum / responses, or None when nobody responded.
    """

    if not survey["finalized"]:
        raise IncompleteReveal(f"survey {survey['id']} is not finalized")
    responses = survey["responses"]
    items = []
    for name, total in zip(survey["item_names"], survey["decrypted_sums"]):
        items.append(
            {
                "name": name,
                "sum": total,
                "average": (total / responses) if responses else None,
            }
        )
    return {"survey_id": survey["id"], "title": survey["title"], "responses": responses, "items": items}


def publish_results(survey: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    """Return (results, sha256_hex) for a finalized survey."""

    results = tabulate(survey)
    return results, _digest(results)


def verify_results(published_hash: str, survey: Dict[str, Any]) -> Tuple[bool, Dict[str, Any]]:
    """Recompute the results of `survey` and compare with `published_hash`.

    Returns (ok, details) where details contains 'recomputed_results' and 'recomputed_hash'.
    """

    results, recomputed = publish_results(survey)
    ok = isinstance(published_hash, str) and published_hash == recomputed
    return ok, {"recomputed_results": results, "recomputed_hash": recomputed}
