"""
Ledger Poster (``findoc_modules.gl.poster``).

Responsibility
--------------
Writes the balanced journal for a posted document:

    Invoice:  Dr Accounts Receivable (1200)   Cr Sales Revenue (4000)
    Bill:     Dr Operating Expenses (6000)    Cr Accounts Payable (2000)

Account codes and the ledger source come from ``findoc_config``.

Architecture position
---------------------
**Modules layer** -- persistence.  Does NOT commit: ``DocumentService``
owns the transaction so the journal and the document's posted flag
commit or roll back together.

Failure modes
-------------
* ``UnbalancedEntryError`` -- debits != credits (never expected for the
  two-line document journal, checked anyway before any write).
* ``AccountNotFoundError`` -- a configured account code is missing or
  inactive for the organization.
* ``IntegrityError`` -- a second journal for the same document; the
  unique (organization, source, source_id) constraint rejects it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from findoc_config import FinDocConfig, LedgerAccountsDef, get_active_config
from findoc_kernel.db.types import ZERO, round_money
from findoc_kernel.domain.context import RequestContext
from findoc_kernel.exceptions import AccountNotFoundError, UnbalancedEntryError
from findoc_kernel.logging_config import get_logger
from findoc_kernel.services.sequence_service import SequenceService
from findoc_kernel.utils.idempotency import generate_posting_key
from findoc_modules.documents.models import FinancialDocument
from findoc_modules.gl.models import GLAccount, JournalEntryRecord, JournalLineRecord, LineSide
from findoc_modules.gl.orm import GLAccountModel, JournalEntryModel, JournalLineModel

logger = get_logger("modules.gl.poster")


def journal_sequence_name(organization_id: str, year: int) -> str:
    return f"journal:{organization_id}:{year}"


def format_journal_number(year: int, sequence: int) -> str:
    """JE-{YEAR}-{NNNNNN}"""
    return f"JE-{year}-{sequence:06d}"


def build_document_lines(
    document: FinancialDocument,
    accounts: LedgerAccountsDef,
) -> tuple[JournalLineRecord, ...]:
    """Debit/credit pair for the document total."""
    amount = round_money(document.total)
    memo = f"{document.kind.value.title()} {document.document_number}"
    return (
        JournalLineRecord(
            account_code=accounts.debit_account,
            side=LineSide.DEBIT,
            amount=amount,
            line_number=1,
            memo=memo,
        ),
        JournalLineRecord(
            account_code=accounts.credit_account,
            side=LineSide.CREDIT,
            amount=amount,
            line_number=2,
            memo=memo,
        ),
    )


def check_balanced(lines: tuple[JournalLineRecord, ...]) -> None:
    debits = sum((line.debit for line in lines), ZERO)
    credits = sum((line.credit for line in lines), ZERO)
    if debits != credits:
        raise UnbalancedEntryError(str(debits), str(credits))


class LedgerPoster(ABC):
    """Records a document's financial effect in the general ledger."""

    @abstractmethod
    def post_document(
        self,
        ctx: RequestContext,
        document: FinancialDocument,
        posting_date: date,
        journal_entry_id: UUID | None = None,
    ) -> JournalEntryRecord:
        """Write the balanced journal for ``document``."""

    @abstractmethod
    def get_journal(
        self,
        organization_id: str,
        journal_entry_id: UUID,
    ) -> JournalEntryRecord | None:
        """Journal by id, scoped to the organization."""


class SqlAlchemyLedgerPoster(LedgerPoster):
    """
    Ledger poster on a SQLAlchemy session.

    The default chart of accounts is seeded for an organization the first
    time it posts.
    """

    def __init__(
        self,
        session: Session,
        config: FinDocConfig | None = None,
        config_dir: Path | None = None,
    ):
        self._session = session
        self._config = config
        self._config_dir = config_dir
        self._org_configs: dict[str, FinDocConfig] = {}

    def _config_for(self, organization_id: str) -> FinDocConfig:
        """The injected config, else the set scoped to the organization."""
        if self._config is not None:
            return self._config
        if organization_id not in self._org_configs:
            self._org_configs[organization_id] = get_active_config(
                organization_id, config_dir=self._config_dir,
            )
        return self._org_configs[organization_id]

    def ensure_default_accounts(self, ctx: RequestContext) -> list[GLAccount]:
        """Create any missing default accounts for the organization."""
        existing = set(
            self._session.execute(
                select(GLAccountModel.code).where(
                    GLAccountModel.organization_id == ctx.organization_id
                )
            ).scalars()
        )
        created: list[GLAccountModel] = []
        for account in self._config_for(ctx.organization_id).default_accounts:
            if account.code in existing:
                continue
            model = GLAccountModel(
                organization_id=ctx.organization_id,
                code=account.code,
                name=account.name,
                account_type=account.account_type,
                is_active=True,
                created_by_id=ctx.actor_id,
            )
            self._session.add(model)
            created.append(model)
        if created:
            self._session.flush()
            logger.info(
                "default_accounts_created",
                extra={
                    "organization_id": ctx.organization_id,
                    "account_codes": [m.code for m in created],
                },
            )
        return [m.to_dto() for m in created]

    def list_accounts(self, organization_id: str) -> list[GLAccount]:
        models = self._session.execute(
            select(GLAccountModel)
            .where(GLAccountModel.organization_id == organization_id)
            .order_by(GLAccountModel.code)
        ).scalars()
        return [m.to_dto() for m in models]

    def _resolve_account(self, organization_id: str, code: str) -> GLAccountModel:
        account = self._session.execute(
            select(GLAccountModel).where(
                GLAccountModel.organization_id == organization_id,
                GLAccountModel.code == code,
            )
        ).scalar_one_or_none()
        if account is None or not account.is_active:
            raise AccountNotFoundError(organization_id, code)
        return account

    def post_document(
        self,
        ctx: RequestContext,
        document: FinancialDocument,
        posting_date: date,
        journal_entry_id: UUID | None = None,
    ) -> JournalEntryRecord:
        kind_config = self._config_for(ctx.organization_id).for_kind(document.kind.value)
        lines = build_document_lines(document, kind_config.accounts)
        check_balanced(lines)

        self.ensure_default_accounts(ctx)
        accounts = {
            line.account_code: self._resolve_account(ctx.organization_id, line.account_code)
            for line in lines
        }

        year = posting_date.year
        sequence = SequenceService(self._session).next_value(
            journal_sequence_name(ctx.organization_id, year)
        )
        entry = JournalEntryModel(
            id=journal_entry_id or uuid4(),
            organization_id=ctx.organization_id,
            journal_number=format_journal_number(year, sequence),
            source=kind_config.ledger_source,
            source_id=document.id,
            posting_date=posting_date,
            currency=document.currency,
            description=(
                f"{kind_config.ledger_source}: {document.kind.value} "
                f"{document.document_number}"
            ),
            idempotency_key=generate_posting_key(
                ctx.organization_id, kind_config.ledger_source, document.id,
            ),
            created_by_id=ctx.actor_id,
            lines=[
                JournalLineModel(
                    account_id=accounts[line.account_code].id,
                    account_code=line.account_code,
                    side=line.side.value,
                    amount=line.amount,
                    line_number=line.line_number,
                    memo=line.memo,
                    created_by_id=ctx.actor_id,
                )
                for line in lines
            ],
        )
        self._session.add(entry)
        self._session.flush()

        record = entry.to_dto()
        logger.info(
            "journal_posted",
            extra={
                "journal_entry_id": str(record.id),
                "journal_number": record.journal_number,
                "source": record.source,
                "source_id": str(record.source_id),
                "amount": str(lines[0].amount),
            },
        )
        return record

    def get_journal(
        self,
        organization_id: str,
        journal_entry_id: UUID,
    ) -> JournalEntryRecord | None:
        entry = self._session.execute(
            select(JournalEntryModel).where(
                JournalEntryModel.id == journal_entry_id,
                JournalEntryModel.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        return entry.to_dto() if entry else None

    def list_journals(
        self,
        organization_id: str,
        source_id: UUID | None = None,
    ) -> list[JournalEntryRecord]:
        stmt = select(JournalEntryModel).where(
            JournalEntryModel.organization_id == organization_id
        )
        if source_id is not None:
            stmt = stmt.where(JournalEntryModel.source_id == source_id)
        entries = self._session.execute(
            stmt.order_by(JournalEntryModel.journal_number)
        ).scalars()
        return [e.to_dto() for e in entries]
