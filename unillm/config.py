"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < env vars < CLI flags < per-session overrides
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any

import yaml

from unillm.dialects.registry import DialectRouter
from unillm.orchestrator.core import ConversationOptions


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ConversationConfig:
    strip_images_after_turns: float = math.inf
    strip_text_max_tokens: int = 0
    strip_heartbeats_after_turns: float = 1
    chars_per_token: int = 4


@dataclass
class DialectsConfig:
    # extra provider name -> built-in dialect name
    aliases: dict[str, str] = field(default_factory=dict)


@dataclass
class StoreConfig:
    db_path: str = "~/.unillm/conversations.db"


@dataclass
class LoggingConfig:
    level: str = "WARNING"


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class UnillmConfig:
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    dialects: DialectsConfig = field(default_factory=DialectsConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    # ----- per-session overrides (applied last) ----
    _overrides: dict[str, Any] = field(default_factory=dict, repr=False)

    def set_override(self, dotpath: str, value: Any) -> None:
        """Set a per-session override using dot notation (e.g. 'store.db_path')."""
        self._overrides[dotpath] = value
        _apply_dotpath(self, dotpath, value)

    def get_override(self, dotpath: str) -> Any | None:
        return self._overrides.get(dotpath)

    def to_dict(self) -> dict:
        d = asdict(self)
        d.pop("_overrides", None)
        return d

    def conversation_options(self) -> ConversationOptions:
        conv = self.conversation
        return ConversationOptions(
            strip_images_after_turns=float(conv.strip_images_after_turns),
            strip_text_max_tokens=int(conv.strip_text_max_tokens) or None,
            strip_heartbeats_after_turns=float(conv.strip_heartbeats_after_turns),
            chars_per_token=int(conv.chars_per_token),
        )

    def router(self) -> DialectRouter:
        """Return the built-in router extended with the configured aliases."""
        router = DialectRouter()
        for provider, dialect_name in self.dialects.aliases.items():
            router.register_provider(provider, dialect_name)
        return router


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type.  ``inf`` is a valid float."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "UNILLM_STRIP_IMAGES_AFTER":     ("conversation.strip_images_after_turns", float),
    "UNILLM_STRIP_TEXT_MAX_TOKENS":  ("conversation.strip_text_max_tokens", int),
    "UNILLM_STRIP_HEARTBEATS_AFTER": ("conversation.strip_heartbeats_after_turns", float),
    "UNILLM_CHARS_PER_TOKEN":        ("conversation.chars_per_token", int),
    "UNILLM_DB_PATH":                ("store.db_path", str),
    "UNILLM_LOG_LEVEL":              ("logging.level", str),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> UnillmConfig:
    """
    Build an UnillmConfig by layering sources in precedence order:

        defaults  <  config file  <  env vars  <  CLI flags  <  per-session overrides

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                raw = _deep_merge(raw, yaml.safe_load(f) or {})

    if profile and "profiles" in raw:
        profile_data = raw.get("profiles", {}).get(profile, {})
        if profile_data:
            raw = _deep_merge(raw, profile_data)

    cfg = UnillmConfig(
        conversation=_build_section(ConversationConfig, raw.get("conversation", {})),
        dialects=_build_section(DialectsConfig, raw.get("dialects", {})),
        store=_build_section(StoreConfig, raw.get("store", {})),
        logging=_build_section(LoggingConfig, raw.get("logging", {})),
        profiles=raw.get("profiles", {}),
    )

    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            _apply_dotpath(cfg, dotpath, value)

    return cfg
