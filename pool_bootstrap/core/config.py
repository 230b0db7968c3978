"""Process-wide configuration read from ``config.json``.

``CONFIG`` is loaded once at import and replaced in place by ``load_config``
so modules holding a reference see the new values. The signer key and RPC URL
can also come from the environment.
"""

import json
import os
from pathlib import Path
from typing import Any

CONFIG_PATH_ENV_VARS = ("POOL_BOOTSTRAP_CONFIG_PATH", "POOL_BOOTSTRAP_CONFIG")
PRIVATE_KEY_ENV_VAR = "POOL_BOOTSTRAP_PRIVATE_KEY"
RPC_URL_ENV_VAR = "POOL_BOOTSTRAP_RPC_URL"
DEFAULT_CONFIG_FILENAME = "config.json"


def _env(name: str) -> str | None:
    return os.environ.get(name, "").strip() or None


def _text(value: Any) -> str | None:
    return value.strip() or None if isinstance(value, str) else None


def project_root() -> Path | None:
    """Nearest directory holding ``pyproject.toml``, from the cwd then from this file."""
    for start in (Path.cwd(), Path(__file__).parent):
        for candidate in (start.resolve(), *start.resolve().parents):
            if (candidate / "pyproject.toml").exists():
                return candidate
    return None


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()
    from_env = next((value for name in CONFIG_PATH_ENV_VARS if (value := _env(name))), None)
    target = Path(from_env).expanduser() if from_env else Path(DEFAULT_CONFIG_FILENAME)
    if target.is_absolute():
        return target
    root = project_root()
    return root / target if root else target


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Config file {cfg_path} is not valid JSON: {exc}") from exc


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    set_config(load_config_json(path, require_exists=require_exists))


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("rpc_urls", {})


def get_rpc_url_override() -> str | None:
    return _env(RPC_URL_ENV_VAR)


def _wallet() -> dict[str, Any]:
    return CONFIG.get("wallet") or {}


def get_wallet_address() -> str | None:
    return _text(_wallet().get("address"))


def get_private_key() -> str | None:
    wallet = _wallet()
    return (
        _env(PRIVATE_KEY_ENV_VAR)
        or _text(wallet.get("private_key_hex"))
        or _text(wallet.get("private_key"))
    )


def get_bootstrap_config() -> dict[str, Any]:
    return dict(CONFIG.get("bootstrap", {}))
