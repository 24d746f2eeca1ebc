"""Test suite for labpay."""
