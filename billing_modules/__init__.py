"""
Billing Modules.

Thin orchestration layers over the Billing Kernel and Engines.
Each module contains:
- Configuration schemas (policy and settings)
- ORM models (persistence of the kernel's domain records)
- A service that owns the transaction boundary

Modules:
- Receivables: jobs, invoices, payments, statements, outstanding report

Actual processing logic lives in the engines.
"""
