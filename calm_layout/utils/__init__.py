"""Shared helpers for the tool surface."""
