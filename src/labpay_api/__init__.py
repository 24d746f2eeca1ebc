"""FastAPI application for the flight lab checkout API."""
