"""Run settings and input validation."""
from .settings import ProvisionerSettings, load_settings, find_settings_file
from .validation import validate_ip, parse_remote_target

__all__ = [
    "ProvisionerSettings",
    "load_settings",
    "find_settings_file",
    "validate_ip",
    "parse_remote_target",
]
