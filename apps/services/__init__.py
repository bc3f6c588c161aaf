"""Quotes and service projects with cost tracking."""
