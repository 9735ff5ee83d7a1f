"""
payroll_config -- single public entrypoint for payroll rule configuration.

Responsibility:
    Provides the ONLY way to obtain statutory rule tables at runtime,
    through ``get_active_rule_set()`` and the two ``RuleTableSource``
    implementations built on it.  YAML loading is internal tooling and
    never exposed to calculation code.

Architecture position:
    Configuration -- YAML-driven rule sets, build-time validation.
    This package sits above ``payroll_kernel`` / ``payroll_engines`` and
    below ``payroll_services``.  The kernel MUST NEVER import from
    ``payroll_config``.

Invariants enforced:
    - Single entrypoint: all runtime rule tables flow through
      ``get_active_rule_set()``.
    - Build-time validation: a rule set must pass ``validate_rule_set``
      before a snapshot is returned.
    - Fingerprint pinning: when an APPROVED_FINGERPRINT file exists, the
      snapshot fingerprint must match the pinned value.
    - Deterministic loading: the same YAML always produces the same
      snapshot and fingerprint.

Failure modes:
    - ``RuleSetNotFoundError`` -- no rule set effective on the date.
    - ``RuleConfigurationError`` -- rule set validation failed.
    - ``RuleSetIntegrityError`` -- fingerprint mismatch against a pin.

Audit relevance:
    Every successful ``get_active_rule_set()`` call emits a
    ``PAYROLL_CONFIG_TRACE`` log entry containing the rule set id,
    version, fingerprint and table sizes.  Each PayrollResult carries the
    same id and fingerprint.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from payroll_config.integrity import (
    compute_fingerprint,
    verify_fingerprint_pin,
    with_fingerprint,
)
from payroll_config.loader import RULES_FILE_NAME, load_rule_set
from payroll_config.validator import RuleSetValidationResult, validate_rule_set
from payroll_kernel.domain.rules import RuleTableSnapshot
from payroll_kernel.exceptions import RuleConfigurationError, RuleSetNotFoundError

_logger = logging.getLogger("payroll_kernel.config")

# Default rule sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "RuleSetValidationResult",
    "StaticRuleTableSource",
    "YamlRuleTableSource",
    "compute_fingerprint",
    "get_active_rule_set",
    "validate_rule_set",
    "with_fingerprint",
]


def get_active_rule_set(
    as_of: date,
    config_dir: Path | None = None,
) -> RuleTableSnapshot:
    """The ONLY public rule configuration entrypoint.

    Guarantees:
        - The returned snapshot has passed ``validate_rule_set`` and (when
          applicable) fingerprint-pin verification.
        - Its ``fingerprint`` field is filled in.
        - A ``PAYROLL_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - This function does NOT cache snapshots across calls; callers
          hold the returned snapshot for the duration of a run or batch.

    Args:
        as_of: Date the rule set must be effective on.
        config_dir: Override path to the rule sets directory.
            Defaults to payroll_config/sets/.

    Raises:
        RuleSetNotFoundError: If no rule set is effective on ``as_of``.
        RuleConfigurationError: If rule set validation fails.
        RuleSetIntegrityError: If APPROVED_FINGERPRINT exists and does
            not match the computed fingerprint.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR

    snapshot, rule_set_dir = _find_effective_rule_set(sets_dir, as_of)

    validation = validate_rule_set(snapshot)
    if not validation.is_valid:
        raise RuleConfigurationError(
            f"Rule set '{snapshot.rule_set_id}' validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("rule_set_validation_warning", extra={
            "rule_set_id": snapshot.rule_set_id,
            "warning": warning,
        })

    snapshot = with_fingerprint(snapshot)

    verify_fingerprint_pin(
        rule_set_id=snapshot.rule_set_id,
        fingerprint=snapshot.fingerprint,
        rule_set_dir=rule_set_dir,
    )

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "rule_set_id": snapshot.rule_set_id,
            "rule_set_version": snapshot.version,
            "fingerprint": snapshot.fingerprint,
            "as_of": as_of.isoformat(),
            "effective_from": snapshot.effective_from.isoformat(),
            "bracket_count": len(snapshot.brackets),
            "scheme_count": len(snapshot.contribution_rates),
            "overtime_rule_count": len(snapshot.overtime_rules),
        },
    )

    return snapshot


def _find_effective_rule_set(
    sets_dir: Path, as_of: date
) -> tuple[RuleTableSnapshot, Path]:
    """Find the rule set effective on *as_of*.

    Scans every subdirectory of *sets_dir* holding a ``rules.yaml``.  When
    several are effective, the one with the latest ``effective_from`` wins,
    then the highest version.

    Raises:
        RuleSetNotFoundError: If ``sets_dir`` does not exist or no rule
            set is effective on ``as_of``.
    """
    if not sets_dir.is_dir():
        raise RuleSetNotFoundError(as_of.isoformat(), str(sets_dir))

    candidates: list[tuple[RuleTableSnapshot, Path]] = []
    for subdir in sorted(sets_dir.iterdir()):
        if not subdir.is_dir() or not (subdir / RULES_FILE_NAME).exists():
            continue
        snapshot = load_rule_set(subdir)
        if snapshot.is_effective(as_of):
            candidates.append((snapshot, subdir))

    if not candidates:
        raise RuleSetNotFoundError(as_of.isoformat(), str(sets_dir))

    return max(
        candidates,
        key=lambda pair: (pair[0].effective_from, pair[0].version),
    )


class YamlRuleTableSource:
    """Rule table source backed by a directory of YAML rule sets."""

    def __init__(self, config_dir: Path | None = None):
        self._config_dir = config_dir

    def get_snapshot(self, as_of: date) -> RuleTableSnapshot:
        return get_active_rule_set(as_of, config_dir=self._config_dir)


class StaticRuleTableSource:
    """Rule table source that always returns one fixed snapshot.

    The snapshot's fingerprint is computed on construction when missing.
    """

    def __init__(self, snapshot: RuleTableSnapshot):
        if not snapshot.fingerprint:
            snapshot = with_fingerprint(snapshot)
        self._snapshot = snapshot

    @property
    def snapshot(self) -> RuleTableSnapshot:
        return self._snapshot

    def get_snapshot(self, as_of: date) -> RuleTableSnapshot:
        return self._snapshot
