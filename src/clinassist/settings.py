# Secret/config store: where the provider API key and selected model live between sessions, plus
# SecureSettings, which turns stored values (with environment overrides) into a ProviderConfiguration.

from __future__ import annotations

import pathlib
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from . import config
from .context import Context
from .errors import SettingsError
from .fs import write_text_atomic
from .models import ProviderConfiguration, StoredSettings


class SecretStore:
    """
    Opaque get/set store for the provider credential and model selection.

    set() returns None on success or a user-facing error string on failure;
    it never raises.
    """

    def get(self) -> StoredSettings:
        raise NotImplementedError

    def set(self, api_key: str, model: str) -> Optional[str]:
        raise NotImplementedError


class InMemorySecretStore(SecretStore):
    def __init__(self, initial: Optional[StoredSettings] = None) -> None:
        self._value = initial or StoredSettings()

    def get(self) -> StoredSettings:
        return self._value.model_copy()

    def set(self, api_key: str, model: str) -> Optional[str]:
        self._value = self._value.model_copy(update={"api_key": api_key, "model": model})
        return None


def load_settings(path: pathlib.Path) -> Dict[str, Any]:
    """
    Load a YAML mapping from path.

    Returns an empty dict {} when the file is missing, unreadable, or does not
    contain a mapping. The function never raises.
    """
    try:
        if not path.exists() or not path.is_file():
            return {}
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError):
        return {}
    # Non-mapping YAML is treated as empty settings.
    return data if isinstance(data, dict) else {}


class YamlSecretStore(SecretStore):
    """
    File-backed store. The file holds a flat mapping:

        provider: anthropic
        api_key: sk-...
        model: claude-4-5-sonnet-20241022
        base_url: https://api.anthropic.com/v1

    Writes are atomic and the file is created with owner-only permissions.
    """

    def __init__(self, path: Optional[pathlib.Path] = None, ctx: Optional[Context] = None) -> None:
        self.path = pathlib.Path(path or config.SETTINGS_FILE)
        self.ctx = ctx or Context()

    def get(self) -> StoredSettings:
        raw = load_settings(self.path)
        known = {k: raw[k] for k in ("provider", "api_key", "model", "base_url") if raw.get(k) is not None}
        try:
            return StoredSettings.model_validate(known)
        except ValidationError as e:
            self.ctx.error_message(f"Ignoring invalid settings in {self.path}: {e}")
            return StoredSettings()

    def set(self, api_key: str, model: str) -> Optional[str]:
        data = load_settings(self.path)
        data["api_key"] = api_key
        data["model"] = model
        try:
            write_text_atomic(self.path, yaml.safe_dump(data, sort_keys=True))
        except OSError as e:
            self.ctx.log(f"settings write failed: {e}")
            return f"Could not save settings: {e.strerror or e}"
        return None


class SecureSettings:
    """
    Resolves the ProviderConfiguration used for each request.

    Precedence (highest first): environment (CLINASSIST_*), stored settings,
    provider defaults. The provider itself comes from the store when set there,
    otherwise from CLINASSIST_PROVIDER.
    """

    def __init__(self, store: SecretStore, env_overrides: bool = True) -> None:
        self.store = store
        self.env_overrides = env_overrides

    def configuration(self) -> ProviderConfiguration:
        stored = self.store.get()
        values: Dict[str, Any] = {
            "provider": stored.provider,
            "api_key": stored.api_key,
            "model": stored.model or "",
            "base_url": stored.base_url or "",
        }
        if self.env_overrides:
            if "provider" not in stored.model_fields_set and config.PROVIDER:
                values["provider"] = config.PROVIDER
            if config.API_KEY is not None:
                values["api_key"] = config.API_KEY
            if config.MODEL:
                values["model"] = config.MODEL
            if config.BASE_URL:
                values["base_url"] = config.BASE_URL
        try:
            return ProviderConfiguration.model_validate(values)
        except ValidationError as e:
            raise SettingsError(f"Settings are invalid: {e.errors()[0].get('msg', e)}") from e

    def update(self, api_key: str, model: str) -> None:
        """Persist a new key/model pair; raises SettingsError with the store's message on failure."""
        provider = self.configuration().provider
        try:
            ProviderConfiguration(provider=provider, api_key=api_key, model=model)
        except ValidationError as e:
            raise SettingsError(f"Model {model!r} is not available for this provider.") from e
        failure = self.store.set(api_key, model)
        if failure:
            raise SettingsError(failure)
