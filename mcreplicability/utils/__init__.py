"""Validation and formatting helpers."""
