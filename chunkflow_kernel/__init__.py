"""
Chunkflow Kernel - shared infrastructure for the batch engine.

Provides:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with run-scoped context
- Injectable clock for deterministic timestamps
- SQLAlchemy declarative base and engine/session management
"""

__version__ = "0.1.0"
