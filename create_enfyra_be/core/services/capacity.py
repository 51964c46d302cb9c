"""
Disk capacity precheck — runs before anything is written.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from create_enfyra_be.core.errors import ErrorCode, SetupError
from create_enfyra_be.core.models.results import CapacityResult

logger = logging.getLogger(__name__)

MIN_REQUIRED_BYTES = 1 * 1024 * 1024 * 1024  # 1 GiB


def _existing_anchor(target: Path) -> Path:
    """Nearest existing ancestor of ``target`` (the target need not exist yet)."""
    current = target.resolve()
    while not current.exists():
        parent = current.parent
        if parent == current:
            break
        current = parent
    return current


def measure(target_path: Path, minimum_bytes: int = MIN_REQUIRED_BYTES) -> CapacityResult:
    """Measure free/total space on the filesystem holding ``target_path``."""
    anchor = _existing_anchor(Path(target_path))
    usage = shutil.disk_usage(anchor)
    return CapacityResult(
        path=str(anchor),
        free=usage.free,
        total=usage.total,
        required=minimum_bytes,
    )


def check(target_path: Path, minimum_bytes: int = MIN_REQUIRED_BYTES) -> CapacityResult:
    """Verify the target filesystem has at least ``minimum_bytes`` free.

    Raises:
        SetupError: INSUFFICIENT_SPACE when free space is below the
            minimum, or UNKNOWN when the filesystem cannot be queried.
    """
    try:
        result = measure(target_path, minimum_bytes)
    except OSError as exc:
        raise SetupError(
            ErrorCode.UNKNOWN,
            f"Cannot check disk space for {target_path}: {exc}",
        ) from exc

    logger.info(
        "Disk space at %s: %.2f GB free, %.2f GB required",
        result.path, result.free_gb, result.required_gb,
    )

    if not result.has_enough_space:
        shortfall_gb = round((result.required - result.free) / 1024**3, 2)
        raise SetupError(
            ErrorCode.INSUFFICIENT_SPACE,
            f"Not enough free disk space: {result.free_gb} GB free, "
            f"{result.required_gb} GB required",
            remediation=[f"Free up at least {shortfall_gb} GB and try again"],
            details=result.to_dict(),
        )
    return result
