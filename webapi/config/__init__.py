"""Configuration module for the Users Web API."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
