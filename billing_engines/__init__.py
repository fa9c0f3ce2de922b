"""
Billing Engines -- pure calculation layer, zero I/O.

- charges:    fee -> job charge snapshots, job charges -> invoice + items
- lifecycle:  invoice status state machine
- ledger:     payment application against an invoice
- statement:  running-balance statement of account
- job_status: job status projected from its invoice
- aging:      outstanding invoices bucketed by days overdue
- revenue:    monthly revenue and per-customer activity rollups
"""
