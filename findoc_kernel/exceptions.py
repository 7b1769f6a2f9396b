"""
Typed Exception Hierarchy for the FinDoc Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the document engine (web handlers, batch jobs, tests) must be
able to tell "the user typed a negative quantity" from "the invoice was
already sent" without parsing message strings.  Every error therefore has:
  1. Its own exception CLASS (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.update_document(ctx, doc_id, line_items=items)
    except Exception as e:
        if "draft" in str(e):  # FRAGILE - message might change
            show_locked_banner()

Example - RIGHT way:
    try:
        service.update_document(ctx, doc_id, line_items=items)
    except InvalidStateError as e:
        show_locked_banner(status=e.status)
    except ValidationError as e:
        highlight_fields(e.field_errors)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FinDocError (base)
    |
    +-- ValidationError
    |   +-- InvalidCurrencyError
    |   +-- PaymentExceedsBalanceError
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- InvalidStateError
    |
    +-- LedgerError
    |   +-- UnbalancedEntryError
    |   +-- AccountNotFoundError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed / out-of-range input
                | INVALID_CURRENCY            | Not a valid ISO 4217 code
                | PAYMENT_EXCEEDS_BALANCE     | Payment larger than amount due
----------------|-----------------------------|-----------------------------------------
Document        | DOCUMENT_NOT_FOUND          | Unknown id, or id of another tenant
                | PAYMENT_NOT_FOUND           | Unknown payment id, or another tenant's
                | INVALID_STATE               | Operation forbidden in current status
----------------|-----------------------------|-----------------------------------------
Ledger          | UNBALANCED_ENTRY            | Debits != Credits
                | ACCOUNT_NOT_FOUND           | GL account code missing for tenant
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Invalid YAML configuration value

Posting a document that is already posted is NOT an error: it returns a
successful PostingResult with already_posted=True so callers can retry
safely.

===============================================================================
"""


class FinDocError(Exception):
    """
    Base exception for all findoc errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FINDOC_ERROR"


# Validation exceptions


class ValidationError(FinDocError):
    """
    Malformed or out-of-range input.

    field_errors is a list of dicts with keys ``index`` (position in the
    input sequence, or None for scalar fields), ``field`` and ``message``.
    Never silently corrected; the caller re-prompts or re-submits.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field_errors: list[dict] | None = None):
        self.field_errors = field_errors or []
        super().__init__(message)

    @property
    def indexes(self) -> list[int]:
        """Distinct input positions named by the field errors."""
        seen: list[int] = []
        for err in self.field_errors:
            idx = err.get("index")
            if idx is not None and idx not in seen:
                seen.append(idx)
        return seen


class InvalidCurrencyError(ValidationError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(
            f"Invalid ISO 4217 currency code: '{currency}'",
            [{"index": None, "field": "currency", "message": "unknown currency"}],
        )


class PaymentExceedsBalanceError(ValidationError):
    """Payment amount is larger than the document's amount due."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, document_id: str, amount: str, amount_due: str):
        self.document_id = document_id
        self.amount = amount
        self.amount_due = amount_due
        super().__init__(
            f"Payment amount ({amount}) cannot exceed amount due ({amount_due})",
            [{"index": None, "field": "amount", "message": "exceeds amount due"}],
        )


# Document exceptions


class DocumentError(FinDocError):
    """Base exception for document lifecycle errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document does not exist for the requesting organization."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class PaymentNotFoundError(DocumentError):
    """Payment does not exist for the requesting organization."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class InvalidStateError(DocumentError):
    """Operation attempted in a status that forbids it."""

    code: str = "INVALID_STATE"

    def __init__(self, document_id: str, status: str, action: str, reason: str | None = None):
        self.document_id = document_id
        self.status = status
        self.action = action
        self.reason = reason
        message = f"Cannot {action} document {document_id} in status '{status}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# Ledger exceptions


class LedgerError(FinDocError):
    """Base exception for general ledger errors."""

    code: str = "LEDGER_ERROR"


class UnbalancedEntryError(LedgerError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Journal does not balance: debits={debits}, credits={credits}"
        )


class AccountNotFoundError(LedgerError):
    """GL account code does not exist for the organization."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, organization_id: str, account_code: str):
        self.organization_id = organization_id
        self.account_code = account_code
        super().__init__(
            f"GL account {account_code} not found for organization {organization_id}"
        )


# Configuration exceptions


class ConfigurationError(FinDocError):
    """Configuration file contains an invalid value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")
