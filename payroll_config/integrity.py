"""
Rule Set Integrity -- fingerprints and pinning for approved rule sets.

Every snapshot gets a deterministic SHA-256 fingerprint over its canonical
content.  When a rule set directory contains an APPROVED_FINGERPRINT file,
the computed fingerprint must match the pinned value.  This prevents
unreviewed edits to approved statutory rates.

The pin file is a single line: the SHA-256 hex string produced by
``compute_fingerprint()``.

If no APPROVED_FINGERPRINT file exists, the check is skipped
(draft/dev workflow).
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from pathlib import Path

from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.exceptions import RuleSetIntegrityError

PINFILE_NAME = "APPROVED_FINGERPRINT"


def compute_fingerprint(snapshot: RuleTableSnapshot) -> str:
    """SHA-256 hex digest of the snapshot's canonical content."""
    canonical = json.dumps(
        snapshot.canonical_content(), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def with_fingerprint(snapshot: RuleTableSnapshot) -> RuleTableSnapshot:
    """Return a copy of ``snapshot`` with its fingerprint filled in."""
    return dataclasses.replace(snapshot, fingerprint=compute_fingerprint(snapshot))


def read_pinned_fingerprint(rule_set_dir: Path) -> str | None:
    """Read the APPROVED_FINGERPRINT file from a rule set directory.

    Returns:
        The pinned SHA-256 hex string, or None if no pin file exists.
    """
    pin_path = rule_set_dir / PINFILE_NAME
    if not pin_path.is_file():
        return None
    return pin_path.read_text().strip()


def verify_fingerprint_pin(
    rule_set_id: str,
    fingerprint: str,
    rule_set_dir: Path,
) -> None:
    """Verify that the computed fingerprint matches the pin file.

    No-op if no APPROVED_FINGERPRINT file exists (draft/dev mode).

    Raises:
        RuleSetIntegrityError: If pin exists and fingerprint does not match.
    """
    pinned = read_pinned_fingerprint(rule_set_dir)
    if pinned is None:
        return

    if fingerprint != pinned:
        raise RuleSetIntegrityError(
            rule_set_id=rule_set_id,
            expected=pinned,
            actual=fingerprint,
            pin_path=str(rule_set_dir / PINFILE_NAME),
        )
