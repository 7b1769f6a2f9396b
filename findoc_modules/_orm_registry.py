"""
Module ORM Registry (``findoc_modules._orm_registry``).

Ensures every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table before ``create_tables()`` runs.  Scripts, entrypoints
and ``tests/conftest.py`` all go through ``create_tables()``.

MUST NOT be imported by ``findoc_kernel`` at module import time.
"""


def import_all_orm_models() -> None:
    """Import kernel and module ORM modules.  Idempotent."""
    # fmt: off
    import findoc_kernel.services.sequence_service  # noqa: F401
    import findoc_modules.gl.orm  # noqa: F401
    import findoc_modules.documents.orm  # noqa: F401
    # fmt: on
