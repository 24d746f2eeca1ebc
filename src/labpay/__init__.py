"""Checkout and settlement services for the flight lab marketplace."""

__version__ = "0.1.0"
