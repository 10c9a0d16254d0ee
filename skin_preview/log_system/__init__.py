"""Logging helpers for skin_preview."""
