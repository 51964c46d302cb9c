"""
Interactive retry loop — validate connectivity until it passes or the
operator gives up.

Each iteration validates an immutable config snapshot.  On retry only
the failed components' connection fields are re-collected and merged
into a new snapshot; everything else carries over unchanged.  There is
no iteration limit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from create_enfyra_be.core.models.config import CONNECTION_FIELDS, ScaffoldConfig
from create_enfyra_be.core.models.results import ValidationReport
from create_enfyra_be.core.services import prompts
from create_enfyra_be.core.services.connection_validator import validate_all

logger = logging.getLogger(__name__)

Validate = Callable[[ScaffoldConfig], ValidationReport]
Choose = Callable[[], str]
Recollect = Callable[[ScaffoldConfig, list[str]], dict[str, Any]]


def _connection_changes(changes: dict[str, Any], failed: list[str]) -> dict[str, Any]:
    """Keep only the fields that belong to the failed components."""
    allowed = {name for component in failed for name in CONNECTION_FIELDS[component]}
    ignored = sorted(set(changes) - allowed)
    if ignored:
        logger.debug("Ignoring non-connection fields on retry: %s", ", ".join(ignored))
    return {key: value for key, value in changes.items() if key in allowed}


def run_validation_loop(
    config: ScaffoldConfig,
    *,
    validate: Validate = validate_all,
    choose: Choose = prompts.choose_retry_action,
    recollect: Recollect = prompts.recollect_connection_fields,
    on_report: Callable[[ValidationReport], None] | None = None,
) -> ScaffoldConfig | None:
    """Loop until connectivity passes.

    Args:
        config: Initial configuration snapshot.
        validate: Connectivity check (default: ``validate_all``).
        choose: Returns ``prompts.RETRY`` or ``prompts.ABANDON``.
        recollect: Returns a partial update for the failed components.
        on_report: Called with every report, e.g. to display it.

    Returns:
        The validated snapshot, or ``None`` when the operator abandons.
    """
    attempt = 0
    while True:
        attempt += 1
        report = validate(config)
        if on_report is not None:
            on_report(report)
        if report.all_passed:
            logger.info("Connectivity validated on attempt %d", attempt)
            return config

        failed = report.failed_components()
        logger.info("Attempt %d failed: %s", attempt, ", ".join(failed))
        if choose() != prompts.RETRY:
            logger.info("Operator abandoned after %d attempt(s)", attempt)
            return None

        config = config.with_updates(_connection_changes(recollect(config, failed), failed))
