"""Configuration package for the card network."""
from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
