"""Configuration module for the token proxy."""
from .settings import AppConfig, load_settings, load_role_mapping

__all__ = ["AppConfig", "load_settings", "load_role_mapping"]
