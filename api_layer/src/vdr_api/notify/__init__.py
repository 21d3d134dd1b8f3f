"""Outbound email and in-app notifications."""
