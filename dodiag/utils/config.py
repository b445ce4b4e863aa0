"""
Configuration management for the Delivery Optimization diagnostics.

Thresholds, timeouts and fan-out limits are plain settings rather than
constants buried in the probes; they are loaded from a JSON file and
fall back to the defaults below.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .common import CONFIG_PATH, validate_hostname, validate_port

log = logging.getLogger("config")

TEN_MB = 10 * 1024 * 1024


@dataclass
class DiagConfig:
    """Settings for a diagnostic run."""

    # Timeouts (seconds)
    http_timeout: float = 10.0
    tcp_timeout: float = 3.0
    troubleshooter_timeout: int = 300
    command_timeout: int = 60

    # Fan-out
    max_parallel: int = 4

    # Archive sampling
    sample_size_limit: int = TEN_MB
    sample_bytes: int = 4096

    # Verdict thresholds (percent)
    port_fail_below: float = 50.0
    log_fail_below: float = 25.0
    log_pass_above: float = 75.0
    min_cache_percent: int = 10

    # Peer connectivity
    peer_ports: List[int] = field(default_factory=lambda: [7680, 3544])
    fallback_peer_address: str = "192.168.1.1"

    # External troubleshooter
    troubleshooter_path: Optional[str] = None

    # Report viewer
    viewer_host: str = "127.0.0.1"
    viewer_port: int = 8765


def validate_config(cfg):
    """Validate a raw config mapping and return a list of warnings.

    Returns an empty list when the config is valid.
    """
    warnings = []
    if not isinstance(cfg, dict):
        return ["Config is not a JSON object"]

    for key in ("http_timeout", "tcp_timeout", "troubleshooter_timeout", "command_timeout"):
        val = cfg.get(key)
        if val is not None and (isinstance(val, bool) or not isinstance(val, (int, float)) or val <= 0):
            warnings.append(f"{key} must be a positive number, got {val!r}")

    for key in ("max_parallel", "sample_size_limit", "sample_bytes"):
        val = cfg.get(key)
        if val is not None and (isinstance(val, bool) or not isinstance(val, int) or val < 1):
            warnings.append(f"{key} must be a positive integer, got {val!r}")

    for key in ("port_fail_below", "log_fail_below", "log_pass_above", "min_cache_percent"):
        val = cfg.get(key)
        if val is not None and (isinstance(val, bool) or not isinstance(val, (int, float)) or not 0 <= val <= 100):
            warnings.append(f"{key} must be a percentage 0-100, got {val!r}")

    lo, hi = cfg.get("log_fail_below"), cfg.get("log_pass_above")
    if isinstance(lo, (int, float)) and isinstance(hi, (int, float)) and lo > hi:
        warnings.append("log_fail_below must not exceed log_pass_above")

    ports = cfg.get("peer_ports")
    if ports is not None:
        if not isinstance(ports, list) or not ports:
            warnings.append("peer_ports must be a non-empty list")
        else:
            for port in ports:
                ok, err = validate_port(port)
                if not ok:
                    warnings.append(f"peer_ports: {err}")
            if len(set(ports)) != len(ports):
                warnings.append(f"peer_ports contains duplicates: {ports!r}")

    for key in ("fallback_peer_address", "viewer_host"):
        host = cfg.get(key)
        if host is not None:
            ok, err = validate_hostname(host)
            if not ok:
                warnings.append(f"{key}: {err}")

    port = cfg.get("viewer_port")
    if port is not None:
        ok, err = validate_port(port)
        if not ok:
            warnings.append(f"viewer_port: {err}")

    return warnings


class ConfigManager:
    """
    Loads and saves the diagnostic configuration file.

    Unknown keys are ignored; invalid values are reported and replaced
    with defaults so a bad config never aborts a run.
    """

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_file: Path to the JSON config (default ~/.config/dodiag/config.json)
        """
        self.config_file = Path(config_file) if config_file else Path(CONFIG_PATH)
        self._config: Dict[str, Any] = {}

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file.

        Returns:
            Configuration dictionary (empty when missing or unreadable)
        """
        if self.config_file.exists():
            try:
                with open(self.config_file) as f:
                    self._config = json.load(f)
                log.debug("Loaded configuration from %s", self.config_file)
            except json.JSONDecodeError as e:
                log.warning("Invalid config file, using defaults: %s", e)
                self._config = {}
            except OSError as e:
                log.error("Error loading config: %s", e)
                self._config = {}
        else:
            log.debug("No config file found, using defaults")
            self._config = {}

        if not isinstance(self._config, dict):
            log.warning("Config is not a JSON object, using defaults")
            self._config = {}
        return self._config

    def save(self, config: Optional[Dict[str, Any]] = None) -> bool:
        """
        Save configuration to file.

        Returns:
            True if save successful
        """
        if config is not None:
            self._config = config

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                json.dump(self._config, f, indent=2)
            log.debug("Saved configuration to %s", self.config_file)
            return True
        except OSError as e:
            log.error("Error saving config: %s", e)
            return False

    def get_diag_config(self) -> DiagConfig:
        """
        Build a DiagConfig from the loaded file.

        Keys that fail validation keep their default value.
        """
        if not self._config:
            self.load()

        defaults = DiagConfig()
        known = {f.name for f in fields(DiagConfig)}
        values = {}
        for key, val in self._config.items():
            if key not in known:
                log.debug("Ignoring unknown config key: %s", key)
                continue
            problems = validate_config({key: val})
            if problems:
                for problem in problems:
                    log.warning("%s (using default %r)", problem, getattr(defaults, key))
                continue
            values[key] = val

        cfg = DiagConfig(**values)
        if cfg.log_fail_below > cfg.log_pass_above:
            log.warning("log_fail_below exceeds log_pass_above, using default log thresholds")
            cfg.log_fail_below = defaults.log_fail_below
            cfg.log_pass_above = defaults.log_pass_above
        return cfg

    def save_diag_config(self, config: DiagConfig) -> bool:
        """Persist a DiagConfig."""
        return self.save(asdict(config))


def load_diag_config(path: Optional[str] = None) -> DiagConfig:
    """Load a DiagConfig from *path* or the default location."""
    return ConfigManager(Path(path) if path else None).get_diag_config()
