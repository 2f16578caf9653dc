"""Staybook booking core: availability, group allocation, reservations and payments."""

__version__ = "0.1.0"
