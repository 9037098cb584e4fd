"""Layered run settings.

Resolution order, later layers win:

1. built-in defaults
2. YAML settings file (``provisioner.yaml``)
3. ``.env`` file and process environment
4. command line flags

```yaml
ip: 192.168.0.10
username: opcuser
iot_host: 192.168.200.1:22
token_folder: ~/secrets
settle_delay: 5
```
"""
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from ..errors import ValidationError

logger = logging.getLogger(__name__)

# Environment names shared with deployment .env files
ENV_OVERRIDES = {
    "ip": "DEFAULT_IP",
    "username": "DEFAULT_USERNAME",
    "password": "DEFAULT_PASSWORD",
    "iot_host": "DEFAULT_IOT_IP",
    "iot_password": "DEFAULT_IOT_PASSWORD",
}

PATH_KEYS = ("folder", "token_folder")
FLOAT_KEYS = ("settle_delay", "connect_timeout")


@dataclass
class ProvisionerSettings:
    """Everything one provisioning run needs from its environment."""
    folder: Path = field(default_factory=Path.cwd)
    ip: str = "192.168.0.1"
    username: str = ""
    password: str = ""
    iot_password: str = ""
    iot_host: str = "192.168.200.1:22"
    token_folder: Path = field(default_factory=Path.cwd)
    iot_username: str = "root"
    remote_config_path: str = "/etc/telegraf/telegraf.conf"
    settle_delay: float = 5.0
    connect_timeout: Optional[float] = None

    def describe(self) -> list[str]:
        """Header lines for the run summary, passwords omitted."""
        return [
            "Current configuration:",
            "=====================",
            f"Folder: {self.folder}",
            f"IP: {self.ip}",
            f"Username: {self.username}",
            f"IOT Host: {self.iot_host}",
            f"Token Folder: {self.token_folder}",
        ]


def find_settings_file(explicit: Optional[str] = None) -> Optional[Path]:
    """Locate the settings file, if any."""
    if explicit:
        path = Path(explicit).expanduser()
        if not path.exists():
            raise ValidationError(f"Settings file not found: {path}")
        return path

    search_paths = [
        Path.cwd() / "provisioner.yaml",
        Path.cwd() / "configs" / "provisioner.yaml",
        Path.home() / ".config" / "telegraf-provisioner" / "provisioner.yaml",
    ]
    for path in search_paths:
        if path.exists():
            return path
    return None


def _coerce(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key in PATH_KEYS:
        return Path(str(value)).expanduser()
    if key in FLOAT_KEYS:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Setting '{key}' must be a number, got {value!r}") from e
    return str(value)


def _load_file_layer(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ValidationError(f"Could not read settings file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValidationError(f"Settings file {path} is not valid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(f"Settings file {path} must contain a mapping")

    known = {f.name for f in fields(ProvisionerSettings)}
    layer = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown setting '{key}' in {path}")
            continue
        layer[key] = _coerce(key, value)
    return layer


def _load_env_layer() -> dict[str, Any]:
    load_dotenv(find_dotenv(usecwd=True))
    layer = {}
    for key, env_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value is not None:
            layer[key] = value
    return layer


def load_settings(
    config_path: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> ProvisionerSettings:
    """Resolve settings from all layers.

    Args:
        config_path: Explicit settings file; otherwise the search path is used
        overrides: Values from the command line; ``None`` entries are ignored

    Raises:
        ValidationError: If the settings file is missing or malformed
    """
    settings = ProvisionerSettings()

    path = find_settings_file(config_path)
    if path is not None:
        logger.debug(f"Loading settings from {path}")
        settings = replace(settings, **_load_file_layer(path))

    settings = replace(settings, **_load_env_layer())

    if overrides:
        cli_layer = {k: _coerce(k, v) for k, v in overrides.items() if v is not None}
        settings = replace(settings, **cli_layer)

    return settings
