"""
findoc_config -- single public entrypoint for document configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services never read YAML files or
    environment variables directly; they receive a frozen ``FinDocConfig``.

Architecture position:
    Configuration -- sits above ``findoc_kernel`` and below
    ``findoc_modules``.  The kernel MUST NEVER import from ``findoc_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic identity: the same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set matches the organization.
    - ``ConfigurationError`` -- a value failed validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FINDOC_CONFIG_TRACE`` log entry containing the config_id, version,
    checksum and scope, tying posted journals back to the configuration
    that governed them.
"""

from __future__ import annotations

from pathlib import Path

from findoc_config.loader import load_config_file
from findoc_config.schema import (
    DocumentKindConfig,
    FinDocConfig,
    LedgerAccountsDef,
    NumberingConfig,
)
from findoc_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    organization_id: str = "*",
    config_dir: Path | None = None,
) -> FinDocConfig:
    """The ONLY public configuration entrypoint.

    Picks the configuration set whose scope names ``organization_id``;
    otherwise the set scoped to ``"*"``.

    Args:
        organization_id: Organization identifier for scope matching.
        config_dir: Override path to configuration sets directory.
            Defaults to findoc_config/sets/.

    Raises:
        FileNotFoundError: If no matching configuration set is found.
        ConfigurationError: If a configuration value is invalid.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    config = _find_matching_config(sets_dir, organization_id)

    _logger.info(
        "FINDOC_CONFIG_TRACE",
        extra={
            "trace_type": "FINDOC_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "scope_organization": config.scope.organization,
        },
    )
    return config


def _find_matching_config(sets_dir: Path, organization_id: str) -> FinDocConfig:
    """Scan configuration sets and return the best scope match."""
    if not sets_dir.exists():
        raise FileNotFoundError(f"Config sets directory not found: {sets_dir}")

    wildcard: FinDocConfig | None = None
    for set_dir in sorted(sets_dir.iterdir()):
        root = set_dir / "root.yaml"
        if not set_dir.is_dir() or not root.exists():
            continue
        config = load_config_file(root)
        if config.scope.organization == organization_id:
            return config
        if config.scope.organization == "*" and wildcard is None:
            wildcard = config

    if wildcard is None:
        raise FileNotFoundError(
            f"No configuration set found for organization={organization_id!r} "
            f"in {sets_dir}"
        )
    return wildcard


__all__ = [
    "DocumentKindConfig",
    "FinDocConfig",
    "LedgerAccountsDef",
    "NumberingConfig",
    "get_active_config",
]
