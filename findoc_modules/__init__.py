"""
findoc_modules -- document-level modules built on the kernel and engines.

* ``documents`` -- invoices and bills: models, workflows, lifecycle,
  persistence and the DocumentService.
* ``gl`` -- chart of accounts, journals and the ledger poster.
"""
