"""Membership services."""
