"""
Stock Kernel - inventory quantity management across branches and units.

An append-only stock ledger with:
- Multi-unit conversion to a canonical base unit
- Atomic, all-or-nothing branch transfers
- Count reconciliation (opname) as signed ledger deltas
- Low-stock replenishment planning
- Collision-free SKU allocation
"""

__version__ = "0.1.0"
