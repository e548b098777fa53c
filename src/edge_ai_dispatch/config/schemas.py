"""Configuration schemas for the dispatch layer."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from edge_ai_dispatch.core.exceptions import AIErrorCode, ConfigError

DEFAULT_GATEWAY_BASE_URL = "https://gateway.ai.cloudflare.com/v1"
DEFAULT_MODEL_ID = "@cf/meta/llama-3.1-8b-instruct"


class GatewayConfig(BaseModel):
    """Connection parameters for the unified compatibility endpoint."""

    base_url: str = Field(
        default=DEFAULT_GATEWAY_BASE_URL, description="Gateway API root"
    )
    account_id: str | None = Field(default=None, description="Platform account id")
    gateway_id: str = Field(default="default", description="Gateway name")
    token: str | None = Field(
        default=None, description="Optional bearer token for authenticated gateways"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def endpoint(self) -> str:
        """Return the gateway root for the configured account and gateway."""
        if not self.account_id:
            raise ConfigError("gateway.account_id is required to reach the AI gateway")
        return f"{self.base_url}/{self.account_id}/{self.gateway_id}"

    @property
    def compat_url(self) -> str:
        return f"{self.endpoint}/compat/chat/completions"

    @property
    def openrouter_url(self) -> str:
        return f"{self.endpoint}/openrouter"

    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["cf-aig-authorization"] = f"Bearer {self.token}"
        return headers


class ClientConfig(BaseModel):
    """Defaults applied to every dispatch call when options leave them unset."""

    default_model: str = Field(default=DEFAULT_MODEL_ID, min_length=1)
    timeout_ms: int = Field(default=30000, gt=0, description="Per-attempt timeout")
    retries: int = Field(default=2, ge=0, description="Retries after the first attempt")
    fallback_max_tokens: int = Field(
        default=1000, gt=0, description="max_tokens used for models outside the catalog"
    )
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)

    def with_overrides(self, **overrides: Any) -> ClientConfig:
        """Create a new ClientConfig with the non-None overrides applied.

        Raises:
            ValueError: If any override value is invalid
        """
        override_dict = {k: v for k, v in overrides.items() if v is not None}
        try:
            return ClientConfig(**{**self.model_dump(), **override_dict})
        except Exception as e:
            raise ValueError(f"Invalid client configuration override: {e}") from e


class RetryConfig(BaseModel):
    """Backoff parameters for the retry executor."""

    base_delay_ms: float = Field(default=1000, ge=0)
    max_delay_ms: float = Field(default=10000, ge=0)
    jitter_ms: float = Field(default=100, ge=0)
    retry_on: list[AIErrorCode] = Field(
        default_factory=lambda: [
            AIErrorCode.RATE_LIMITED,
            AIErrorCode.TIMEOUT,
            AIErrorCode.NETWORK_ERROR,
        ]
    )

    @model_validator(mode="after")
    def check_bounds(self) -> RetryConfig:
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")
        return self


class ToolLoopConfig(BaseModel):
    """Settings for the tool execution loop."""

    max_iterations: int = Field(default=5, ge=1)


class CatalogModelConfig(BaseModel):
    """A model entry added to the catalog from configuration."""

    id: str = Field(min_length=1)
    display_name: str | None = None
    provider: str | None = None
    context_window: int = Field(default=8192, gt=0)
    max_output_tokens: int = Field(default=1000, gt=0)
    is_reasoning: bool = False
    supports_streaming: bool = True
    supports_tools: bool = False
    supports_vision: bool = False
    tier: Literal["flagship", "balanced", "fast", "specialized", "reasoning"] = "balanced"
    description: str = ""


class AppConfig(BaseModel):
    """Top-level configuration."""

    environment: Literal["development", "production"] = "development"
    log_level: str = "INFO"
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    tools: ToolLoopConfig = Field(default_factory=ToolLoopConfig)
    models: list[CatalogModelConfig] = Field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> AppConfig:
        """Create AppConfig from a dictionary, handling nested models."""
        models = config_dict.get("models") or []
        # YAML may give models as a mapping of id -> settings
        if isinstance(models, dict):
            models = [{"id": model_id, **(spec or {})} for model_id, spec in models.items()]

        return cls(
            environment=config_dict.get("environment", "development"),
            log_level=str(config_dict.get("log_level", "INFO")),
            gateway=GatewayConfig(**(config_dict.get("gateway") or {})),
            client=ClientConfig(**(config_dict.get("client") or {})),
            retry=RetryConfig(**(config_dict.get("retry") or {})),
            tools=ToolLoopConfig(**(config_dict.get("tools") or {})),
            models=[CatalogModelConfig(**m) for m in models],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert AppConfig to a dictionary with secrets masked."""
        data = self.model_dump(mode="json")
        if data["gateway"].get("token"):
            data["gateway"]["token"] = "***"
        return data
