"""get-app-config: expose a handful of public configuration values to clients."""

from __future__ import annotations

from app.errors import ConfigKeyNotAllowedError, ValidationError
from config import settings


def get_app_config(key: str | None) -> dict:
    if not key:
        raise ValidationError("Missing config key")
    if key not in settings.PUBLIC_CONFIG_KEYS:
        raise ConfigKeyNotAllowedError(f"Access to config key '{key}' is not allowed")
    return {"key": key, "value": getattr(settings, key, None)}
