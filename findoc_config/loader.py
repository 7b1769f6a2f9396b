"""
Configuration Loader (``findoc_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``findoc_config.schema`` dataclasses.  Runtime callers go through
``findoc_config.get_active_config()``; this module is its tooling.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Amounts are parsed from strings into ``Decimal``, never via float.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from findoc_config.schema import (
    ConfigScope,
    DefaultAccountDef,
    DocumentKindConfig,
    FinDocConfig,
    LedgerAccountsDef,
    NumberingConfig,
)
from findoc_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(key: str, value: Any) -> Decimal:
    """Parse a Decimal from a YAML scalar (quoted strings preferred)."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(key, f"not a decimal: {value!r}") from e


def parse_kind(name: str, data: dict[str, Any]) -> DocumentKindConfig:
    """Parse one document kind section."""
    accounts = data["accounts"]
    tolerance = parse_decimal(f"{name}.payment_tolerance", data.get("payment_tolerance", "0.00"))
    if tolerance < 0:
        raise ConfigurationError(f"{name}.payment_tolerance", "cannot be negative")
    return DocumentKindConfig(
        ledger_source=data["ledger_source"],
        accounts=LedgerAccountsDef(
            debit_account=str(accounts["debit"]),
            credit_account=str(accounts["credit"]),
        ),
        allow_overpayment=bool(data.get("allow_overpayment", False)),
        payment_tolerance=tolerance,
        auto_post_on_issue=bool(data.get("auto_post_on_issue", True)),
    )


def parse_numbering(data: dict[str, Any]) -> NumberingConfig:
    """Parse the numbering section."""
    prefix_length = int(data.get("prefix_length", 3))
    padding = int(data.get("padding", 4))
    if prefix_length < 1:
        raise ConfigurationError("numbering.prefix_length", "must be at least 1")
    if padding < 1:
        raise ConfigurationError("numbering.padding", "must be at least 1")
    return NumberingConfig(prefix_length=prefix_length, padding=padding)


def parse_default_account(data: dict[str, Any]) -> DefaultAccountDef:
    """Parse one default chart-of-accounts entry."""
    return DefaultAccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=data["type"],
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the raw configuration mapping."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_config(data: dict[str, Any]) -> FinDocConfig:
    """
    Parse a complete configuration mapping.

    Raises:
        KeyError: Required section or key missing.
        ConfigurationError: Invalid value.
    """
    scope = data.get("scope") or {}
    documents = data["documents"]
    config = FinDocConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        scope=ConfigScope(organization=str(scope.get("organization", "*"))),
        invoice=parse_kind("invoice", documents["invoice"]),
        bill=parse_kind("bill", documents["bill"]),
        numbering=parse_numbering(data.get("numbering") or {}),
        default_accounts=tuple(
            parse_default_account(a) for a in data.get("default_accounts") or ()
        ),
        checksum=compute_checksum(data),
    )
    validate_config(config)
    return config


def validate_config(config: FinDocConfig) -> None:
    """Cross-section checks: posted accounts must be seeded by default."""
    seeded = {a.code for a in config.default_accounts}
    for kind_name, kind in (("invoice", config.invoice), ("bill", config.bill)):
        for side, code in (
            ("debit", kind.accounts.debit_account),
            ("credit", kind.accounts.credit_account),
        ):
            if seeded and code not in seeded:
                raise ConfigurationError(
                    f"documents.{kind_name}.accounts.{side}",
                    f"account {code} is not in default_accounts",
                )
        if kind.accounts.debit_account == kind.accounts.credit_account:
            raise ConfigurationError(
                f"documents.{kind_name}.accounts",
                "debit and credit accounts must differ",
            )


def load_config_file(path: Path) -> FinDocConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(path))
