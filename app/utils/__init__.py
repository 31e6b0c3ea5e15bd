"""Utility modules for the Automation API."""

from app.utils.config import settings, validate_settings
from app.utils.logging import setup_logging, redact_dict

__all__ = [
    'settings',
    'validate_settings',
    'setup_logging',
    'redact_dict',
]
