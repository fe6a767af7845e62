"""
Finance Tracker - Source Package

A local-first personal finance tracker: per-profile transaction ledgers,
monthly archives, category budgets, and JSON/CSV exports, persisted to a
local store and mirrored opportunistically to a remote document store.

DESIGN PRINCIPLES:
1. Local storage is the value of record
2. Remote sync is best-effort and never fails a user action
3. Profiles are strictly isolated namespaces
4. Archives are frozen historical records
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
