"""Audit services."""
