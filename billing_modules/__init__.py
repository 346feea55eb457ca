"""
Billing Modules.

Thin orchestration layers over the Billing Kernel.  Each module contains:
- Domain models (the nouns)
- ORM models (persistence)
- Workflows (state machines)
- Services (flush-only, the caller owns the transaction)
"""
