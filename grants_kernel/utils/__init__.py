"""Utility helpers for the grants kernel."""
