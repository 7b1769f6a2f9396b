"""
FinDoc Kernel

Shared foundation for the financial document engine:
- Typed error hierarchy with machine-readable codes
- Structured JSON logging
- SQLAlchemy declarative base and engine management
- Injectable clock and explicit request context
"""

__version__ = "0.1.0"
