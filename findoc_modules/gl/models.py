"""
General Ledger Domain Models (``findoc_modules.gl.models``).

Frozen dataclass value objects for GL accounts and the journals written
when a document is posted.  ZERO I/O.

Invariants enforced
-------------------
* Journal line amounts are positive; ``side`` carries the sign.
* ``JournalEntryRecord.is_balanced`` holds for every journal the poster
  writes.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from findoc_kernel.db.types import ZERO


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class LineSide(str, Enum):
    """Which side of the entry a line is on."""
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class GLAccount:
    """A chart-of-accounts entry of one organization."""
    id: UUID
    organization_id: str
    code: str
    name: str
    account_type: AccountType
    is_active: bool = True


@dataclass(frozen=True)
class JournalLineRecord:
    """One debit or credit line."""
    account_code: str
    side: LineSide
    amount: Decimal
    line_number: int = 0
    memo: str | None = None

    @property
    def debit(self) -> Decimal:
        return self.amount if self.side is LineSide.DEBIT else ZERO

    @property
    def credit(self) -> Decimal:
        return self.amount if self.side is LineSide.CREDIT else ZERO


@dataclass(frozen=True)
class JournalEntryRecord:
    """A posted journal with its lines."""
    id: UUID
    organization_id: str
    journal_number: str
    source: str
    source_id: UUID
    posting_date: date
    currency: str
    description: str
    idempotency_key: str
    lines: tuple[JournalLineRecord, ...] = field(default_factory=tuple)

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits
