"""
joinpatch Configuration Management

Loads configuration from YAML, then applies environment variable overrides.
"""

import os
import yaml
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from pathlib import Path

from .ports import DEFAULT_PORT_BANDS
from .resolver import DEFAULT_PROVIDERS, DEFAULT_TIMEOUT_S, DEFAULT_TTL_S


DEFAULT_JOIN_HOST = "play.sunderfolk.com"


@dataclass
class ResolverConfig:
    """External address lookup configuration."""
    providers: List[str] = field(default_factory=lambda: list(DEFAULT_PROVIDERS))
    timeout_s: float = DEFAULT_TIMEOUT_S
    cache_ttl_s: float = DEFAULT_TTL_S


@dataclass
class PortInferenceConfig:
    """Port inference configuration."""
    bands: List[Tuple[int, int]] = field(
        default_factory=lambda: list(DEFAULT_PORT_BANDS)
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class JoinPatchConfig:
    """Main joinpatch configuration."""
    patch_enabled: bool = True
    qr_image_generation_enabled: bool = False
    dev_mode_verbose: bool = False
    join_host: str = DEFAULT_JOIN_HOST

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    ports: PortInferenceConfig = field(default_factory=PortInferenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_bands(data: List) -> List[Tuple[int, int]]:
    """Parse port bands from `[[low, high], ...]` or `["low-high", ...]`."""
    bands = []
    for band in data:
        if isinstance(band, str):
            low, high = band.split("-", 1)
        else:
            low, high = band
        bands.append((int(low), int(high)))
    return bands


def load_config(config_path: Optional[str] = None) -> JoinPatchConfig:
    """
    Load joinpatch configuration from file or environment.

    Priority:
        1. Environment variables (JOINPATCH_*)
        2. Config file (explicit path, $JOINPATCH_CONFIG, system, user)
        3. Default values

    Args:
        config_path: Optional path to config file

    Returns:
        JoinPatchConfig instance
    """
    config = JoinPatchConfig()

    config_paths = [
        config_path,
        os.environ.get("JOINPATCH_CONFIG"),
        "/etc/joinpatch/joinpatch.yaml",
        str(Path.home() / ".config/joinpatch/joinpatch.yaml"),
    ]

    for path in config_paths:
        if path and os.path.exists(path):
            with open(path, "r") as f:
                data = yaml.safe_load(f)
                if data:
                    _apply_config_data(config, data)
            break

    _apply_env_overrides(config)

    return config


def _apply_config_data(config: JoinPatchConfig, data: Dict) -> None:
    """Apply configuration data from dict to config object."""
    if "patch_enabled" in data:
        config.patch_enabled = bool(data["patch_enabled"])
    if "qr_image_generation_enabled" in data:
        config.qr_image_generation_enabled = bool(data["qr_image_generation_enabled"])
    if "dev_mode_verbose" in data:
        config.dev_mode_verbose = bool(data["dev_mode_verbose"])
    if "join_host" in data:
        config.join_host = data["join_host"]

    if "resolver" in data:
        res = data["resolver"]
        config.resolver.providers = res.get("providers", config.resolver.providers)
        config.resolver.timeout_s = float(res.get("timeout_s", config.resolver.timeout_s))
        config.resolver.cache_ttl_s = float(
            res.get("cache_ttl_s", config.resolver.cache_ttl_s)
        )

    if "ports" in data:
        ports = data["ports"]
        if "bands" in ports:
            config.ports.bands = _parse_bands(ports["bands"])

    if "logging" in data:
        log = data["logging"]
        config.logging.level = log.get("level", config.logging.level)
        config.logging.file = log.get("file", config.logging.file)


def _apply_env_overrides(config: JoinPatchConfig) -> None:
    """Apply environment variable overrides."""
    if os.environ.get("JOINPATCH_PATCH_ENABLED"):
        config.patch_enabled = _parse_bool(os.environ["JOINPATCH_PATCH_ENABLED"])
    if os.environ.get("JOINPATCH_QR_IMAGE"):
        config.qr_image_generation_enabled = _parse_bool(os.environ["JOINPATCH_QR_IMAGE"])
    if os.environ.get("JOINPATCH_DEV_MODE"):
        config.dev_mode_verbose = _parse_bool(os.environ["JOINPATCH_DEV_MODE"])
    if os.environ.get("JOINPATCH_JOIN_HOST"):
        config.join_host = os.environ["JOINPATCH_JOIN_HOST"]
    if os.environ.get("JOINPATCH_PROVIDERS"):
        config.resolver.providers = [
            p.strip() for p in os.environ["JOINPATCH_PROVIDERS"].split(",") if p.strip()
        ]
    if os.environ.get("JOINPATCH_RESOLVER_TIMEOUT"):
        config.resolver.timeout_s = float(os.environ["JOINPATCH_RESOLVER_TIMEOUT"])
    if os.environ.get("JOINPATCH_LOG_LEVEL"):
        config.logging.level = os.environ["JOINPATCH_LOG_LEVEL"]
