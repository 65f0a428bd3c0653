# PATH: monitoring/__init__.py
"""Monitoring package: realized-profit ledger."""

from monitoring.profit_ledger import ProfitLedger

__all__ = ["ProfitLedger"]
