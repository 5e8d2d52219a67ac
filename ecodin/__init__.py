"""
ecodin - Source Package

A personal-finance tracker: record income and expenses, follow totals,
category breakdowns and monthly trends, and ask an AI for a summary of
your spending within a monthly allowance.

DESIGN PRINCIPLES:
1. Aggregations are pure functions, recomputed on every change
2. Validate at the write boundary, trust data downstream
3. External failures are caught where they happen, never crash a session
4. The AI quota is only charged for summaries that were delivered
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "ecodin Team"
