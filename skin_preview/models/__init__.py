"""Data models for skin_preview."""
