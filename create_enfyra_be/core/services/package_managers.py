"""
Package managers and host runtime — detection, version gates, metadata.

Read-only probes: resolves executables on PATH and parses their
``--version`` output.  The install itself runs in the provisioning
pipeline.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass

from create_enfyra_be.adapters.shell.command import run_command
from create_enfyra_be.core.errors import RuntimeCheckError

logger = logging.getLogger(__name__)

MIN_NODE_VERSION = "18.0.0"

_VERSION_RE = re.compile(r"v?(\d+)\.(\d+)(?:\.(\d+))?")
_VERSION_TIMEOUT_S = 3


# ── Package manager definitions ─────────────────────────────────


_PACKAGE_MANAGERS: dict[str, dict] = {
    "npm": {
        "min_version": "8.0.0",
        "install": ["npm", "install"],
        "dev_command": "npm run start:dev",
        "issues": "https://github.com/npm/cli/issues",
    },
    "yarn": {
        "min_version": "1.22.0",
        "install": ["yarn", "install"],
        "dev_command": "yarn start:dev",
        "issues": "https://github.com/yarnpkg/berry/issues",
    },
    "pnpm": {
        "min_version": "8.0.0",
        "install": ["pnpm", "install"],
        "dev_command": "pnpm start:dev",
        "issues": "https://github.com/pnpm/pnpm/issues",
    },
    "bun": {
        "min_version": "1.0.0",
        "install": ["bun", "install"],
        "dev_command": "bun run start:dev",
        "issues": "https://github.com/oven-sh/bun/issues",
    },
}

SUPPORTED_MANAGERS: tuple[str, ...] = tuple(_PACKAGE_MANAGERS)


@dataclass(frozen=True)
class DetectedManager:
    """A package manager found on PATH that meets its minimum version."""

    name: str
    version: str

    @property
    def label(self) -> str:
        return f"{self.name} (v{self.version})"


# ── Version helpers ─────────────────────────────────────────────


def parse_version(text: str) -> tuple[int, int, int] | None:
    """Extract the first ``X.Y[.Z]`` from ``text``."""
    m = _VERSION_RE.search(text or "")
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)


def meets_minimum(version: str, minimum: str) -> bool:
    parsed = parse_version(version)
    required = parse_version(minimum)
    if parsed is None or required is None:
        return False
    return parsed >= required


def get_tool_version(tool: str) -> str | None:
    """Installed version of ``tool`` via ``<tool> --version``, or None."""
    if shutil.which(tool) is None:
        return None
    result = run_command([tool, "--version"], timeout=_VERSION_TIMEOUT_S)
    if not result.ok:
        logger.debug("%s --version failed: %s", tool, result.output.strip())
        return None
    parsed = parse_version(result.output)
    if parsed is None:
        return None
    return ".".join(str(part) for part in parsed)


# ── Detection ───────────────────────────────────────────────────


def detect_package_managers() -> list[DetectedManager]:
    """Every supported package manager on PATH that passes its version gate."""
    found: list[DetectedManager] = []
    for name, spec in _PACKAGE_MANAGERS.items():
        version = get_tool_version(name)
        if version is None:
            continue
        if not meets_minimum(version, spec["min_version"]):
            logger.info(
                "Ignoring %s %s (requires >= %s)", name, version, spec["min_version"],
            )
            continue
        found.append(DetectedManager(name=name, version=version))
    return found


def require_package_managers() -> list[DetectedManager]:
    """Like ``detect_package_managers`` but fatal when none qualify."""
    managers = detect_package_managers()
    if not managers:
        raise RuntimeCheckError(
            "No compatible package manager found!",
            hints=[
                f"Install {name} >= {spec['min_version']}"
                for name, spec in _PACKAGE_MANAGERS.items()
            ],
        )
    return managers


def check_node_version(minimum: str = MIN_NODE_VERSION) -> str:
    """Ensure the Node.js runtime that will run the project is recent enough.

    Returns:
        The detected Node.js version.

    Raises:
        RuntimeCheckError: Node.js is missing or older than ``minimum``.
    """
    version = get_tool_version("node")
    if version is None:
        raise RuntimeCheckError(
            "Node.js was not found on PATH.",
            hints=[f"Install Node.js {minimum} or higher."],
        )
    if not meets_minimum(version, minimum):
        raise RuntimeCheckError(
            f"Node.js version {version} is not supported.",
            hints=[f"Please upgrade to Node.js {minimum} or higher."],
        )
    return version


# ── Metadata ────────────────────────────────────────────────────


def install_command(manager: str) -> list[str]:
    return list(_PACKAGE_MANAGERS[manager]["install"])


def dev_command(manager: str) -> str:
    return _PACKAGE_MANAGERS[manager]["dev_command"]


def install_remediation(manager: str, alternatives: list[str] | None = None) -> list[str]:
    """Suggestions attached to a failed dependency install."""
    spec = _PACKAGE_MANAGERS[manager]
    hints = [
        "Check your internet connection and registry access",
        f"Retry manually: {' '.join(spec['install'])}",
        f"If this looks like a {manager} bug, report it at {spec['issues']}",
    ]
    others = [m for m in (alternatives or []) if m != manager]
    if others:
        hints.append(f"Or try another package manager: {', '.join(others)}")
    return hints
