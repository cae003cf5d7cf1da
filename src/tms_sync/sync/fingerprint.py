"""Content fingerprints for scenarios.

A fingerprint is a SHA-256 hex digest over a scenario's visible content
(name, description and every step's description and expected result, in
order). It is what the state store records per scenario, so a scenario
whose fingerprint is unchanged needs no remote call.
"""

from __future__ import annotations

import hashlib
import json

from .models import Scenario


def normalize_text(text: str) -> str:
    """Normalise *text* so fingerprints are stable across platforms.

    Normalisation steps (applied in order):

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` with ``\\n``.
    3. Right-strip each line.
    4. Strip trailing empty lines.
    5. Strip surrounding whitespace.
    """
    text = text.lstrip("\ufeff")
    text = text.replace("\r\n", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines).strip()


def fingerprint(scenario: Scenario) -> str:
    """Compute the content fingerprint of *scenario*.

    The normalised parts are serialised as a JSON array before hashing,
    so text moving from one field to another changes the digest.
    """
    parts = [
        normalize_text(scenario.name),
        normalize_text(scenario.description),
        [
            [normalize_text(step.description), normalize_text(step.expected)]
            for step in scenario.steps
        ],
    ]
    payload = json.dumps(parts, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
