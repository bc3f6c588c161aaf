"""Customers, commercial documents and point-of-sale totals."""
