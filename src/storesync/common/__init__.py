"""Shared helpers for storesync."""
