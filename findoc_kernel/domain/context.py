"""
Request context (``findoc_kernel.domain.context``).

The tenant and actor of a request travel as an explicit, immutable value
passed to every service call.  Nothing in the kernel reads ambient
session state, headers or globals to discover who is asking.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Who is calling, on behalf of which organization.

    Contract: frozen; passed by value.
    Guarantees: organization_id is non-blank; actor_id is a UUID.
    ``organization_slug`` feeds invoice numbering and may be omitted, in
    which case the organization id is used as the slug.
    """

    organization_id: str
    actor_id: UUID
    organization_slug: str | None = None
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        if not self.organization_id or not self.organization_id.strip():
            raise ValueError("organization_id is required")
        if not isinstance(self.actor_id, UUID):
            raise TypeError(f"actor_id must be a UUID, got {type(self.actor_id)}")

    @property
    def slug(self) -> str:
        return self.organization_slug or self.organization_id

    def log_fields(self) -> dict[str, str | None]:
        """Fields for ``LogContext.bind``."""
        return {
            "organization_id": self.organization_id,
            "actor_id": str(self.actor_id),
            "correlation_id": self.correlation_id,
        }
