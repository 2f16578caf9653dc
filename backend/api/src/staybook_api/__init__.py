"""Staybook REST API (FastAPI)."""
