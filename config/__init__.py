"""Configuration package for the live interview services."""
from .routes import AppConfig, LlmRoute, load_config, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "resolve_route",
    "Settings",
    "settings",
]
