"""
Inventory Kernel

A FIFO batch ledger with:
- Oldest-first cost attribution for every sale
- Per-product row locking so concurrent sales never oversell
- All-or-nothing units of work
- Idempotent application of stream-delivered events
"""

__version__ = "0.1.0"
