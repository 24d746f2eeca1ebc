"""Utility helpers shared across labpay services."""
