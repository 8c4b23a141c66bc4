"""
Finance Kernel - bank reconciliation foundation

Shared building blocks for the reconciliation modules:
- Declarative ORM base and engine/session management
- Chart-of-accounts and double-entry journal models
- Structured JSON logging with per-operation context
- Typed exception taxonomy
- Injectable clock and sequence numbering
"""

__version__ = "0.1.0"
