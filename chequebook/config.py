from __future__ import annotations
"""
chequebook.config — configuration for a chequebook service

Covers:
- Which contracts we act on (chequebook escrow, its ERC-20 token, owner)
- Where the ledger lives (KV URI)
- Logging level/format and whether metrics are recorded

Environment overrides (all optional; sensible defaults provided):

  CHEQUEBOOK_ADDRESS=0x...           # escrow contract
  CHEQUEBOOK_TOKEN_ADDRESS=0x...     # ERC-20 backing the escrow
  CHEQUEBOOK_OWNER_ADDRESS=0x...     # issuer / contract owner
  CHEQUEBOOK_DB_URI=sqlite:///chequebook.db
  CHEQUEBOOK_LOG_LEVEL=INFO
  CHEQUEBOOK_LOG_FORMAT=json|text
  CHEQUEBOOK_METRICS=1

You can also load from a JSON or YAML file via
`CHEQUEBOOK_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml

from .cheque import to_address

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_LOG_FORMATS = ("json", "text")


@dataclass
class ChequebookConfig:
    """Top-level configuration container."""
    chequebook_address: Optional[str] = None
    token_address: Optional[str] = None
    owner_address: Optional[str] = None
    db_uri: str = "sqlite:///chequebook.db"
    log_level: str = "INFO"
    log_format: Optional[str] = None  # None: decide from the stream (TTY → text)
    metrics_enabled: bool = True

    def validate(self) -> None:
        for name in ("chequebook_address", "token_address", "owner_address"):
            v = getattr(self, name)
            if v is not None:
                try:
                    to_address(v)
                except ValueError as e:
                    raise ValueError(f"{name} is not a valid address (got {v!r}).") from e
        if not self.db_uri or not self.db_uri.strip():
            raise ValueError("db_uri must be non-empty.")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {_LOG_LEVELS} (got {self.log_level!r}).")
        if self.log_format is not None and self.log_format not in _LOG_FORMATS:
            raise ValueError(f"log_format must be one of {_LOG_FORMATS} (got {self.log_format!r}).")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _getenv_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    s = v.strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid bool for {name}: {v!r}")


def _getenv_str(name: str, default: Optional[str]) -> Optional[str]:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v.strip()


def from_env(base: Optional[ChequebookConfig] = None, prefix: str = "CHEQUEBOOK_") -> ChequebookConfig:
    """
    Build a ChequebookConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or ChequebookConfig()

    log_format = _getenv_str(f"{prefix}LOG_FORMAT", cfg.log_format)
    new_cfg = ChequebookConfig(
        chequebook_address=_getenv_str(f"{prefix}ADDRESS", cfg.chequebook_address),
        token_address=_getenv_str(f"{prefix}TOKEN_ADDRESS", cfg.token_address),
        owner_address=_getenv_str(f"{prefix}OWNER_ADDRESS", cfg.owner_address),
        db_uri=_getenv_str(f"{prefix}DB_URI", cfg.db_uri) or cfg.db_uri,
        log_level=(_getenv_str(f"{prefix}LOG_LEVEL", cfg.log_level) or cfg.log_level).upper(),
        log_format=log_format.lower() if log_format else None,
        metrics_enabled=_getenv_bool(f"{prefix}METRICS", cfg.metrics_enabled),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> ChequebookConfig:
    """
    Load configuration from a JSON or YAML file. Unknown keys are rejected.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")
    if not isinstance(data, dict):
        raise ValueError(f"config file must contain a mapping (got {type(data).__name__}).")

    known = {f.name for f in fields(ChequebookConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    cfg = replace(ChequebookConfig(), **data)
    cfg.validate()
    return cfg


def load(config_file: Optional[str | os.PathLike[str]] = None) -> ChequebookConfig:
    """Defaults ← file (argument or CHEQUEBOOK_CONFIG_FILE) ← environment."""
    path = config_file or os.getenv("CHEQUEBOOK_CONFIG_FILE")
    base = from_file(path) if path else ChequebookConfig()
    return from_env(base)


__all__ = ["ChequebookConfig", "from_env", "from_file", "load"]
