"""Utility helpers - authentication and exports."""
