"""
Back-Office Modules.

Business packages built on the kernel.  Each contains:
- Domain models (enums and frozen value objects)
- ORM models
- Services (the only writers; they flush, the caller commits)
- Workflows and configuration where the package needs them

Modules:
- Project: project registry, variation orders, derived status
- Procurement: received client purchase orders and their revision chains
- Billing: client invoices, per-project sequence and cumulative percentage
- Payables: purchase orders issued to vendors, received vendor invoices
"""
