"""
Meo Map Expense Ledger - Source Package

A personal and group expense ledger. Users log dated, categorized
transactions, browse spending per month or per group event, and get a
short spending commentary from an AI assistant.

DESIGN PRINCIPLES:
1. The Ledger Store owns every expense - callers only see read views
2. Locked sessions and archived events are frozen, and the store re-checks
3. Imports degrade gracefully: bad records are dropped, good ones land
4. The AI bridge never leaves the caller without a renderable result
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Meo Map Team"
