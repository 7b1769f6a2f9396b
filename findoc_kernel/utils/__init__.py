"""Utility modules for the findoc kernel."""

from findoc_kernel.utils.idempotency import (
    generate_posting_key,
    parse_posting_key,
)

__all__ = [
    "generate_posting_key",
    "parse_posting_key",
]
