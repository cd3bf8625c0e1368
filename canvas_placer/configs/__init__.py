"""Placer configuration loading and validation."""

from canvas_placer.configs.loader import (
    AgentsConfig,
    BrowserConfig,
    ConfigError,
    ImageConfig,
    LoggingConfig,
    PlacerConfig,
    RetryConfig,
    TimingConfig,
    apply_env_overrides,
    load_config,
)

__all__ = [
    "AgentsConfig",
    "BrowserConfig",
    "ConfigError",
    "ImageConfig",
    "LoggingConfig",
    "PlacerConfig",
    "RetryConfig",
    "TimingConfig",
    "apply_env_overrides",
    "load_config",
]
