# src/stakepool/runtime/node_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class NodeConfig:
    node_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Empty means an in-memory store (nothing survives a restart).
    db_path: str

    contract_address: str
    contract_code_hash: str

    api_host: str
    api_port: int

    log_level: str

    # Optional JSON InitMsg used to instantiate on first boot.
    init_path: str
    # Sender recorded as admin by that instantiation.
    admin: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_node_config(cfg: NodeConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.node_id, str) or not cfg.node_id.strip():
        raise ValueError("node_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if not cfg.contract_address.strip():
        raise ValueError("contract_address must be a non-empty string")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if str(cfg.log_level).strip().upper() not in _ALLOWED_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LEVELS}; got: {cfg.log_level!r}")

    if mode == "prod" and not cfg.db_path.strip():
        raise ValueError("db_path is required in prod mode (in-memory store loses all state on restart)")

    if cfg.init_path:
        if not Path(cfg.init_path).is_file():
            raise ValueError(f"init_path does not exist or is not a file: {cfg.init_path!r}")
        if not cfg.admin.strip():
            raise ValueError("admin must be set when init_path is given")


def default_node_config() -> NodeConfig:
    return NodeConfig(
        node_id="local-node",
        mode="dev",
        db_path="",
        contract_address="stakepool",
        contract_code_hash="",
        api_host="127.0.0.1",
        api_port=8000,
        log_level="INFO",
        init_path="",
        admin="",
    )


def read_node_config_file(path: str) -> NodeConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("node config must be a JSON object")

    d = default_node_config()

    cfg = NodeConfig(
        node_id=_as_str(raw.get("node_id"), d.node_id),
        mode=_as_str(raw.get("mode"), d.mode),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        contract_address=_as_str(raw.get("contract_address"), d.contract_address),
        contract_code_hash=_as_str(raw.get("contract_code_hash"), d.contract_code_hash),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
        init_path=_as_str(raw.get("init_path"), d.init_path),
        admin=_as_str(raw.get("admin"), d.admin),
    )

    validate_node_config(cfg)
    return cfg


def load_node_config(*, config_path: Optional[str] = None) -> NodeConfig:
    p = config_path or os.environ.get("STAKEPOOL_NODE_CONFIG_PATH")
    if p:
        return read_node_config_file(p)

    cfg = default_node_config()
    validate_node_config(cfg)
    return cfg


def apply_node_config_to_env(cfg: NodeConfig) -> None:
    validate_node_config(cfg)
    os.environ["STAKEPOOL_NODE_ID"] = cfg.node_id
    # sqlite_db reads the mode for its durability default.
    os.environ["STAKEPOOL_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["STAKEPOOL_LOG_LEVEL"] = cfg.log_level
