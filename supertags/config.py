# supertags/config.py
"""
Configuration for SuperTags services.

Values are resolved in order, later sources winning:
    1. Defaults
    2. YAML config file (optional)
    3. Environment variables (SUPERTAGS_*)

Example supertags.yaml:
    data_dir: /var/lib/supertags
    port: 9000
    creators:
      - 0x5b38da6a701c568545dcfcb03fcb875f56beddc4
    signing_key: /etc/supertags/host-key.json
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigError

ENV_PREFIX = "SUPERTAGS_"


@dataclass
class Config:
    """
    Settings shared by the CLI, the HTTP server and scripts.

    Attributes:
        data_dir: Directory holding registry state and the event log
        host: Server bind address
        port: Server port
        creators: Identities allowed to mint (empty: anyone may mint)
        signing_key: Path to a host key used to sign event records
        log_level: Logging level name
    """
    data_dir: Path = Path(".supertags")
    host: str = "127.0.0.1"
    port: int = 8080
    creators: List[str] = field(default_factory=list)
    signing_key: Optional[Path] = None
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data_dir": str(self.data_dir),
            "host": self.host,
            "port": self.port,
            "creators": list(self.creators),
            "signing_key": str(self.signing_key) if self.signing_key else None,
            "log_level": self.log_level,
        }


def _coerce(values: Dict[str, Any]) -> Dict[str, Any]:
    coerced = dict(values)
    if "data_dir" in coerced:
        coerced["data_dir"] = Path(coerced["data_dir"])
    if coerced.get("signing_key"):
        coerced["signing_key"] = Path(coerced["signing_key"])
    if "port" in coerced:
        try:
            coerced["port"] = int(coerced["port"])
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid port: {coerced['port']!r}")
        if not 0 <= coerced["port"] <= 65535:
            raise ConfigError(f"Port out of range: {coerced['port']}")
    if "creators" in coerced:
        creators = coerced["creators"]
        if isinstance(creators, str):
            creators = [c.strip() for c in creators.split(",") if c.strip()]
        if not isinstance(creators, list):
            raise ConfigError(f"creators must be a list, got {type(creators).__name__}")
        coerced["creators"] = [str(c) for c in creators]
    if "log_level" in coerced:
        coerced["log_level"] = str(coerced["log_level"]).upper()
    return coerced


def _from_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(Config)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(unknown)}")
    return data


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    values = {}
    for f in fields(Config):
        key = ENV_PREFIX + f.name.upper()
        if key in environ:
            values[f.name] = environ[key]
    return values


def load_config(path: Path | str = None, environ: Mapping[str, str] = None) -> Config:
    """
    Load configuration.

    Args:
        path: Optional YAML file
        environ: Environment mapping (default: os.environ)

    Returns:
        Resolved Config

    Raises:
        ConfigError: unreadable file, unknown keys or invalid values
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_from_file(Path(path)))
    values.update(_from_env(os.environ if environ is None else environ))
    return Config(**_coerce(values))
