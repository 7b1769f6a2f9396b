"""
FinDoc configuration schema.

Frozen dataclasses the YAML loader parses into.  Values here are the
source of truth for per-kind document behaviour (overpayment, tolerance,
auto posting) and for the ledger accounts each kind posts to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class ConfigScope:
    """Organizations the configuration applies to ("*" = any)."""

    organization: str = "*"


@dataclass(frozen=True)
class LedgerAccountsDef:
    """GL account codes a document kind posts to."""

    debit_account: str
    credit_account: str


@dataclass(frozen=True)
class DocumentKindConfig:
    """Behaviour of one document kind (invoice or bill)."""

    ledger_source: str
    accounts: LedgerAccountsDef
    allow_overpayment: bool = False
    payment_tolerance: Decimal = Decimal("0.00")
    auto_post_on_issue: bool = True


@dataclass(frozen=True)
class DefaultAccountDef:
    """A GL account seeded for every organization."""

    code: str
    name: str
    account_type: str


@dataclass(frozen=True)
class NumberingConfig:
    """Invoice number format: {PREFIX}-{YEAR}-{SEQ}."""

    prefix_length: int = 3
    padding: int = 4


@dataclass(frozen=True)
class FinDocConfig:
    """A complete, validated configuration set."""

    config_id: str
    version: int
    scope: ConfigScope
    invoice: DocumentKindConfig
    bill: DocumentKindConfig
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    default_accounts: tuple[DefaultAccountDef, ...] = ()
    checksum: str = ""

    def for_kind(self, kind: str) -> DocumentKindConfig:
        """Kind config by document kind value ("invoice" / "bill")."""
        if kind == "invoice":
            return self.invoice
        if kind == "bill":
            return self.bill
        raise KeyError(f"Unknown document kind: {kind}")
