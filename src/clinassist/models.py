# Pydantic v2 models shared across the client, stores and orchestrators; the single source of truth for
# provider catalogs, request parameters and the snapshots published to observers.

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CustomBaseModel(BaseModel):
    """Pydantic base model configured to forbid unknown fields for strict validation."""
    model_config = ConfigDict(extra="forbid")


class FrozenModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class ProviderName(str, Enum):
    anthropic = "anthropic"
    openai = "openai"
    ollama = "ollama"


class Framing(str, Enum):
    """How successive stream pieces relate to each other."""
    delta = "delta"  # each piece is appended
    snapshot = "snapshot"  # each piece replaces everything before it


class Phase(str, Enum):
    idle = "idle"
    streaming = "streaming"
    completed = "completed"
    failed = "failed"


class ModelOption(FrozenModel):
    id: str = Field(..., description="Wire model identifier")
    display_name: str = Field(..., description="Label shown in the settings picker")


class ProviderProfile(FrozenModel):
    label: str = Field(..., description="Human-readable provider name used in messages")
    base_url: str = Field(..., description="Default endpoint root")
    models: List[ModelOption] = Field(..., description="Supported models, default first")

    @property
    def default_model(self) -> str:
        return self.models[0].id

    def supports(self, model_id: str) -> bool:
        return any(m.id == model_id for m in self.models)


PROVIDER_CATALOG: Dict[ProviderName, ProviderProfile] = {
    ProviderName.anthropic: ProviderProfile(
        label="Anthropic",
        base_url="https://api.anthropic.com/v1",
        models=[
            ModelOption(id="claude-4-5-sonnet-20241022", display_name="Claude Sonnet 4.5 (Recommended)"),
            ModelOption(id="claude-4-haiku-20241022", display_name="Claude Haiku 4 (Fast)"),
        ],
    ),
    ProviderName.openai: ProviderProfile(
        label="OpenAI",
        base_url="https://api.openai.com/v1",
        models=[
            ModelOption(id="gpt-4o", display_name="GPT-4o (Recommended)"),
            ModelOption(id="gpt-4o-mini", display_name="GPT-4o mini (Fast)"),
        ],
    ),
    ProviderName.ollama: ProviderProfile(
        label="Ollama",
        base_url="https://ollama.com/api",
        models=[
            ModelOption(id="gpt-oss:120b", display_name="GPT-OSS 120B (Recommended)"),
            ModelOption(id="gpt-oss:20b", display_name="GPT-OSS 20B (Fast)"),
        ],
    ),
}


class ProviderConfiguration(CustomBaseModel):
    """
    Everything the streaming client needs to reach one provider.

    api_key=None means no key was ever configured; a blank string means a key
    was saved but is unusable. Both are rejected by the client before any
    network call, but callers can tell them apart via has_api_key.
    """

    provider: ProviderName = Field(default=ProviderName.anthropic)
    api_key: Optional[str] = Field(default=None)
    model: str = Field(default="")
    base_url: str = Field(default="")

    @model_validator(mode="before")
    @classmethod
    def _fill_provider_defaults(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        provider = ProviderName(data.get("provider") or ProviderName.anthropic)
        profile = PROVIDER_CATALOG[provider]
        data["provider"] = provider
        if not data.get("model"):
            data["model"] = profile.default_model
        if not data.get("base_url"):
            data["base_url"] = profile.base_url
        return data

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def _check_model_supported(self) -> "ProviderConfiguration":
        if not self.profile.supports(self.model):
            raise ValueError(f"model {self.model!r} is not supported by provider {self.provider.value!r}")
        return self

    @property
    def profile(self) -> ProviderProfile:
        return PROVIDER_CATALOG[self.provider]

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None

    def usable_api_key(self) -> Optional[str]:
        """Return the stripped key, or None when absent or whitespace-only."""
        if self.api_key is None:
            return None
        key = self.api_key.strip()
        return key or None


class StoredSettings(CustomBaseModel):
    """Raw values held by a secret store; unset fields fall back to provider defaults."""

    provider: ProviderName = Field(default=ProviderName.anthropic)
    api_key: Optional[str] = Field(default=None)
    model: Optional[str] = Field(default=None)
    base_url: Optional[str] = Field(default=None)


class PromptTemplate(FrozenModel):
    name: str = Field(..., description="Display name of the command")
    command: str = Field(..., description="Unique lookup key, e.g. 'drug' or 'cds'")
    source: str = Field(..., description="Where the prompt text originated")
    system_prompt: str = Field(..., description="System prompt sent with every request for this command")


class RequestContext(CustomBaseModel):
    """Per-submission request parameters; built fresh on every submit and never persisted."""

    user_message: str
    system_prompt: str
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    max_tokens: int = Field(default=4096, gt=0)


class StreamSnapshot(FrozenModel):
    """Immutable copy of an orchestrator's observable state, handed to observers."""

    phase: Phase = Phase.idle
    format: str = ""
    output: str = ""
    is_streaming: bool = False
    is_fetching_alternate: bool = False
    error: Optional[str] = None
