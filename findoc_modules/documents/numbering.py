"""
Invoice numbering.

Invoice numbers read ``{ORG}-{YEAR}-{SEQ}``: the first letters of the
organization slug upper-cased, the issue year, and a zero-padded
per-organization, per-year sequence (``ACM-2024-0001``).  Bills carry the
supplier's own number and are not numbered here.
"""

from findoc_kernel.exceptions import ValidationError


def invoice_prefix(organization_slug: str, length: int = 3) -> str:
    prefix = organization_slug.strip().upper()[:length]
    if not prefix:
        raise ValidationError(
            "Organization slug is required for invoice numbering",
            [{"index": None, "field": "organization_slug", "message": "is required"}],
        )
    return prefix


def invoice_sequence_name(organization_id: str, year: int) -> str:
    """Counter name for ``SequenceService``."""
    return f"invoice:{organization_id}:{year}"


def format_invoice_number(
    organization_slug: str,
    year: int,
    sequence: int,
    prefix_length: int = 3,
    padding: int = 4,
) -> str:
    return f"{invoice_prefix(organization_slug, prefix_length)}-{year}-{sequence:0{padding}d}"
