"""Helpers for loading runtime configuration profiles."""
from __future__ import annotations

import codecs
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import BackendError, ErrorCode
from .models import GlobalSettings, ProfileSettings, RuntimeConfig

DEFAULT_CONFIG_PATH = Path(__file__).with_name("defaults.json")
DEFAULT_PROFILE = "default"
ALLOWED_ERROR_POLICIES = {"fail-fast", "strict", "replace"}
MIN_CHUNK_SIZE = 1024


@dataclass(slots=True)
class ConfigDocument:
    source: Path
    version: int
    global_settings: GlobalSettings
    profiles: Dict[str, ProfileSettings]


def load_runtime_config(
    profile: str = DEFAULT_PROFILE,
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
    verbose: bool = False,
) -> RuntimeConfig:
    """Load configuration JSON, validate it, and resolve a specific profile."""

    document = load_config_document(
        profile_name=profile,
        config_path=config_path,
        overrides=overrides,
    )
    try:
        profile_settings = document.profiles[profile]
    except KeyError as exc:  # pragma: no cover - guarded earlier
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{profile}' not found in {document.source}",
        ) from exc
    return RuntimeConfig(
        global_settings=document.global_settings,
        profile=profile_settings,
        verbose=verbose,
    )


def load_config_document(
    *,
    profile_name: Optional[str] = None,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> ConfigDocument:
    cfg_path = config_path or DEFAULT_CONFIG_PATH
    raw = _read_config_json(cfg_path)

    version = _require_positive_int(raw.get("version"), "version", cfg_path)
    global_section = raw.get("global")
    if not isinstance(global_section, Mapping):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"'global' section missing in {cfg_path}")

    overrides = overrides or {}
    global_data = {**global_section, **(overrides.get("global") or {})}
    global_settings = _build_global_settings(global_data, cfg_path)

    profiles_section = raw.get("profiles")
    if not isinstance(profiles_section, Mapping) or not profiles_section:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"'profiles' section missing in {cfg_path}")

    profile_overrides = overrides.get("profile") or {}
    profiles: Dict[str, ProfileSettings] = {}
    for name, profile_data in profiles_section.items():
        if not isinstance(profile_data, Mapping):
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                f"Profile '{name}' must be an object in {cfg_path}",
            )
        merged = dict(profile_data)
        if profile_name and name == profile_name and profile_overrides:
            merged = {**merged, **profile_overrides}
        profiles[name] = _build_profile_settings(name, merged, cfg_path)

    if profile_name and profile_name not in profiles:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{profile_name}' not found in {cfg_path}",
        )

    return ConfigDocument(
        source=cfg_path,
        version=version,
        global_settings=global_settings,
        profiles=profiles,
    )


def error_mode_from_policy(policy: str) -> str:
    """Translate human-friendly error policy into Python's decoding error handler."""

    return "strict" if policy.lower() in {"fail-fast", "strict"} else "replace"


# ---------------------------------------------------------------------------
# Internal helpers


def _read_config_json(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' not found") from exc
    except json.JSONDecodeError as exc:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' is not valid JSON: {exc}") from exc


def _build_global_settings(data: Mapping[str, Any], source: Path) -> GlobalSettings:
    defaults = GlobalSettings()
    encoding = _require_encoding(data.get("encoding", defaults.encoding), source)
    error_policy = _normalize_error_policy(data.get("error_policy", defaults.error_policy), source)
    index_suffix = _require_string(data.get("index_suffix", defaults.index_suffix), "global.index_suffix", source)
    if not index_suffix.startswith(".") or "/" in index_suffix or "\\" in index_suffix:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"global.index_suffix must be a file extension like '.idx' in {source}",
        )
    return GlobalSettings(encoding=encoding, error_policy=error_policy, index_suffix=index_suffix)


def _build_profile_settings(name: str, data: Mapping[str, Any], source: Path) -> ProfileSettings:
    prefix = f"profiles.{name}"
    required_fields = ["description", "chunk_size"]
    missing = [field for field in required_fields if field not in data]
    if missing:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{name}' missing fields {missing} in {source}",
        )

    defaults = ProfileSettings()
    description = _require_string(data.get("description"), f"{prefix}.description", source)
    chunk_size = _require_positive_int(data.get("chunk_size"), f"{prefix}.chunk_size", source)
    if chunk_size < MIN_CHUNK_SIZE:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{prefix}.chunk_size must be at least {MIN_CHUNK_SIZE} bytes in {source}",
        )
    write_batch_entries = _require_positive_int(
        data.get("write_batch_entries", defaults.write_batch_entries),
        f"{prefix}.write_batch_entries",
        source,
    )
    progress_interval_bytes = _require_positive_int(
        data.get("progress_interval_bytes", defaults.progress_interval_bytes),
        f"{prefix}.progress_interval_bytes",
        source,
    )
    return ProfileSettings(
        description=description,
        chunk_size=chunk_size,
        write_batch_entries=write_batch_entries,
        progress_interval_bytes=progress_interval_bytes,
    )


def _require_encoding(value: Any, source: Path) -> str:
    encoding = _require_string(value, "global.encoding", source)
    try:
        codecs.lookup(encoding)
        terminator = "\n".encode(encoding)
    except LookupError as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Unknown encoding '{encoding}' in {source}",
        ) from exc
    # offsets are found by scanning for the single byte 0x0A
    if terminator != b"\n":
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Encoding '{encoding}' in {source} must encode newline as the single byte 0x0A",
        )
    return encoding


def _normalize_error_policy(value: Any, source: Path) -> str:
    policy = _require_string(value, "global.error_policy", source).lower()
    if policy not in ALLOWED_ERROR_POLICIES:
        allowed = ", ".join(sorted(ALLOWED_ERROR_POLICIES))
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Unsupported error_policy '{value}' in {source}. Allowed: {allowed}",
        )
    return "fail-fast" if policy in {"fail-fast", "strict"} else "replace"


def _require_string(value: Any, field: str, source: Path) -> str:
    if not isinstance(value, str):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be a string in {source}")
    text = value.strip()
    if not text:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be non-empty in {source}")
    return text


def _require_positive_int(value: Any, field: str, source: Path) -> int:
    if isinstance(value, bool):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be an integer in {source}")
    try:
        num = int(value)
    except (TypeError, ValueError) as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be an integer in {source}",
        ) from exc
    if num <= 0:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be greater than zero in {source}",
        )
    return num
