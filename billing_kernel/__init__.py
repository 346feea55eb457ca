"""
Billing Kernel

Shared primitives for the agency back office:
- Typed error hierarchy
- Structured JSON logging
- SQLAlchemy base, engine and session management
- Injectable clock and pure domain helpers
"""

__version__ = "0.1.0"
