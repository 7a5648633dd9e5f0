"""
Split Ledger - Source Package

The balance engine of a shared-expense ledger: members of a group log
expenses with arbitrary splits, and the ledger reports who owes whom and
how to settle up with the fewest payments.

DESIGN PRINCIPLES:
1. Money is integer minor units inside the engine, Decimal at the edges
2. Balances are always recomputed from the full history
3. Locks only ever go one way
4. Budget checks warn, they never block
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Split Ledger Team"
