"""
                        Services Module

Domain logic behind the API routers. Routers handle HTTP; services take an
AsyncSession and an Actor and raise restopos.core.errors exceptions.

Services:
    - access: actor resolution, permissions, outlet scoping
    - order_workflow: status transitions and their side effects
    - orders: order creation, listing and line edits
    - billing: bill generation, bill view, reprint
    - tables: table status sync and read-path reconciliation
    - inventory: stock deduction, manual adjustment, alerts, log
    - pricing: portion pricing and tax arithmetic
    - reports: sales reports and analytics
    - ledger: spreadsheet ledger of generated bills
"""
