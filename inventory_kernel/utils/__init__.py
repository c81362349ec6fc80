"""Utility helpers for the inventory kernel."""
