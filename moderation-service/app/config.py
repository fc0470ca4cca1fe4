# app/config.py
"""Handles loading the application configuration into an immutable Settings object."""
import copy
import logging
import os
import tomllib
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "classifier": {
        "api_base": "https://api.groq.com/openai/v1",
        "model": "llama3-70b-8192",
        "temperature": 0.1,
        "timeout_seconds": 5.0,
    },
    "store": {
        "api_key_table": "api_key",
        "results_table": "request_data",
    },
    "guardrails": {
        "audit_log": True,
    },
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "cors_allow_origins": ["*"],
    },
}

# env var -> (section, key, cast)
ENV_OVERRIDES = {
    "PORT": ("server", "port", int),
    "GROQ_API_URL": ("classifier", "api_base", str),
    "GROQ_MODEL": ("classifier", "model", str),
}

_COMPLETIONS_SUFFIX = "/chat/completions"

@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup."""
    classifier_api_base: str
    classifier_api_key: Optional[str]
    classifier_model: str
    classifier_temperature: float
    classifier_timeout: float
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    api_key_table: str
    results_table: str
    audit_log: bool
    host: str
    port: int
    cors_allow_origins: Tuple[str, ...]

def _merge(base: Dict[str, Any], user_cfg: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for k, v in user_cfg.items():
        if isinstance(v, dict) and isinstance(merged.get(k), dict):
            merged[k].update(v)
        else:
            merged[k] = v
    return merged

def _read_toml(path: str) -> Dict[str, Any]:
    """Reads the TOML config file, returning an empty dict if it is absent or broken."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("[config] failed to load %s: %s", path, e)
        return {}

def normalize_api_base(url: str) -> str:
    """Accepts either an API base URL or a full chat completions URL."""
    url = url.rstrip("/")
    if url.endswith(_COMPLETIONS_SUFFIX):
        url = url[: -len(_COMPLETIONS_SUFFIX)]
    return url

def load_settings(config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """Builds Settings from defaults, then the TOML file, then environment variables."""
    env = os.environ if environ is None else environ
    path = config_path or env.get("CONFIG_PATH", "config.toml")
    cfg = _merge(DEFAULT_CONFIG, _read_toml(path))

    for var, (section, key, cast) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw:
            cfg[section][key] = cast(raw)

    return Settings(
        classifier_api_base=normalize_api_base(str(cfg["classifier"]["api_base"])),
        classifier_api_key=env.get("GROQ_API_KEY") or None,
        classifier_model=str(cfg["classifier"]["model"]),
        classifier_temperature=float(cfg["classifier"]["temperature"]),
        classifier_timeout=float(cfg["classifier"]["timeout_seconds"]),
        supabase_url=env.get("SUPABASE_URL") or None,
        supabase_key=env.get("SUPABASE_ANON_KEY") or None,
        api_key_table=str(cfg["store"]["api_key_table"]),
        results_table=str(cfg["store"]["results_table"]),
        audit_log=bool(cfg["guardrails"]["audit_log"]),
        host=str(cfg["server"]["host"]),
        port=int(cfg["server"]["port"]),
        cors_allow_origins=tuple(cfg["server"]["cors_allow_origins"]),
    )
