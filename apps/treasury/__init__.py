"""Operational expenses and treasury movements (capital, withdrawals, loans)."""
