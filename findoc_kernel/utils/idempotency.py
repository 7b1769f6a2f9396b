"""
Posting key generation utilities.

A posting key identifies the single ledger posting a document may ever
produce.  It is stored on the journal entry and has a unique constraint,
so a duplicate posting fails at the database even if the document flag
guard is bypassed.
"""

from uuid import UUID


def generate_posting_key(
    organization_id: str,
    source: str,
    document_id: UUID | str,
) -> str:
    """
    Generate the posting key for a document.

    Format: organization_id:source:document_id

    Args:
        organization_id: Tenant that owns the document.
        source: Ledger source ("Receivables", "Payables").
        document_id: Document identifier.

    Returns:
        Posting key string.

    Example:
        >>> generate_posting_key("org_1", "Receivables", uuid)
        "org_1:Receivables:550e8400-e29b-41d4-a716-446655440000"
    """
    return f"{organization_id}:{source}:{document_id}"


def parse_posting_key(key: str) -> tuple[str, str, str]:
    """
    Parse a posting key into its components.

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.rsplit(":", 2)
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Invalid posting key format: {key}")
    return parts[0], parts[1], parts[2]
