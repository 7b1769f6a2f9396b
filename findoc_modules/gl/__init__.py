"""General ledger: chart of accounts, journals and the ledger poster."""

from findoc_modules.gl.models import (
    AccountType,
    GLAccount,
    JournalEntryRecord,
    JournalLineRecord,
    LineSide,
)
from findoc_modules.gl.poster import LedgerPoster, SqlAlchemyLedgerPoster

__all__ = [
    "AccountType",
    "GLAccount",
    "JournalEntryRecord",
    "JournalLineRecord",
    "LedgerPoster",
    "LineSide",
    "SqlAlchemyLedgerPoster",
]
