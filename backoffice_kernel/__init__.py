"""
Back-Office Kernel

Shared infrastructure for the engineering back-office lifecycle engine:
- Declarative SQLAlchemy base and engine/session management
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- Currency conversion snapshots against MYR
- Locked-counter sequence allocation
"""

__version__ = "0.1.0"
