"""Suppliers and the accounts payable owed to them."""
