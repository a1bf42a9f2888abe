"""Vendor API clients."""
