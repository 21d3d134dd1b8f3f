"""Warehouse gateway, migrations and repositories."""
