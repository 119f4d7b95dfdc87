import os
from dataclasses import dataclass

import toml
import yaml

from filelizard.errors import ConfigurationError, ServiceEventIds

DEFAULT_CONFIG_PATH = "./config.toml"
ENV_CONFIG_DIR_VAR = "FILELIZARD_CONFIG_DIR"
MONITOR_SECTION = "monitor"

STRING_SETTINGS = {
    "PathToMonitor": "path_to_monitor",
    "SmtpServer": "smtp_server",
    "SentFrom": "send_from",
    "SendTo": "send_to",
}

BOOLEAN_SETTINGS = {
    "IncludeSubDirectories": "include_subdirectories",
    "NotifyOnChange": "notify_on_change",
    "NotifyOnDelete": "notify_on_delete",
    "NotifyOnNew": "notify_on_new",
    "NotifyOnRename": "notify_on_rename",
}


@dataclass(frozen=True)
class MonitorSettings:
    """What to watch and where to send notifications."""

    path_to_monitor: str
    include_subdirectories: bool
    notify_on_new: bool
    notify_on_delete: bool
    notify_on_change: bool
    notify_on_rename: bool
    send_from: str
    send_to: str
    smtp_server: str


def resolve_config_path(cli_config_path=None):
    """
    Pick the configuration file to use.

    Precedence:
      1. cli_config_path if provided.
      2. Environment variable FILELIZARD_CONFIG_DIR (looking for config.toml).
      3. Default to ./config.toml.
    """
    if cli_config_path:
        return cli_config_path
    if os.environ.get(ENV_CONFIG_DIR_VAR):
        return os.path.join(os.environ[ENV_CONFIG_DIR_VAR], "config.toml")
    return DEFAULT_CONFIG_PATH


def load_config(cli_config_path=None):
    """
    Load configuration from a TOML (or YAML) file.

    Returns:
        dict: The configuration settings.
    """
    config_path = resolve_config_path(cli_config_path)

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        if config_path.endswith((".yaml", ".yml")):
            config_data = yaml.safe_load(f) or {}
        else:
            config_data = toml.load(f)

    return config_data


def _missing(sink, key):
    if sink is not None:
        sink.error(
            f'Required setting "{key}" was not found in the service configuration file.',
            ServiceEventIds.CONFIGURATION_INVALID,
        )


def _parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def load_monitor_settings(config, sink=None):
    """
    Build MonitorSettings from the [monitor] table of a loaded configuration.

    Every missing key is reported to ``sink`` (when given) before a single
    ConfigurationError naming all of them is raised.

    Args:
        config (dict): Configuration as returned by load_config.
        sink (EventLogSink, optional): Where to report missing keys.

    Returns:
        MonitorSettings: The validated settings.
    """
    section = config.get(MONITOR_SECTION)
    if not isinstance(section, dict):
        section = {}

    values = {}
    missing = []

    for key, field in STRING_SETTINGS.items():
        raw = section.get(key)
        value = str(raw).strip() if raw is not None else ""
        if not value:
            _missing(sink, key)
            missing.append(key)
        values[field] = value

    for key, field in BOOLEAN_SETTINGS.items():
        raw = section.get(key)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            _missing(sink, key)
            missing.append(key)
            values[field] = False
        else:
            values[field] = _parse_bool(raw)

    if missing:
        raise ConfigurationError(
            "Required configuration settings are not available: " + ", ".join(missing),
            missing_keys=missing,
        )

    return MonitorSettings(**values)


def get_log_dir(config, config_path):
    """Resolve the log directory relative to the configuration file."""
    config_dir = os.path.dirname(os.path.abspath(config_path or DEFAULT_CONFIG_PATH))
    return os.path.join(config_dir, config.get("logging", {}).get("log_dir", "logs"))
