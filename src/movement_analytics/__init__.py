# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Movement Analytics
------------------

A Python analytics engine over the financial movements (income and expense
events) of an organization. It answers a fixed set of questions, each as a
structured summary or a structured negative outcome:

- organization balance,
- movements attributed to a contact in any role,
- spending on subcontractors, personnel or partners,
- date-range reports with filters and grouping,
- per-period cash flow with trend classification,
- per-project financial summary,
- client payment commitments against the payments received.

Amounts in several currencies are never mixed silently: callers either pick
one currency or ask for a conversion through an in-scope reference rate.

Movement Analytics separates computation (analytics), storage (ledger store,
SQLite by default), configuration (TOML) and presentation (Spanish messages,
DataFrame views, CLI).


Version: 0.1.0

Usage:
    python -m movement_analytics.cli --help
"""

__all__ = ["analytics", "messages", "views", "io"]

__version__ = "0.1.0"
