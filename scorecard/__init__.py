"""
Scorecard metric window and rollup engine.

Turns a sparse ledger of metric observations into scorecard values,
statuses and trends per time window, propagates child values up rollup
hierarchies, and ranks subjects against peer populations.
"""

__version__ = "0.1.0"
