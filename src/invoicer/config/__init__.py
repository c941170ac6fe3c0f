"""Configuration for invoicer application."""

from invoicer.config.logging import configure_logging
from invoicer.config.settings import Settings, load_settings

__all__ = ["Settings", "configure_logging", "load_settings"]
