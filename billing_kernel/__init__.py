"""
Billing Kernel

The foundation layer of the freight billing core:
- Exact Decimal money utilities
- Typed, coded exceptions
- Structured JSON logging
- Domain records shared by engines and modules
- SQLAlchemy base, engine and transactional scope
- Sequence allocation, audit and notification boundaries
"""

__version__ = "0.1.0"
