"""Root settings model for kodus_flow configuration."""

from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from kodus_flow.config.models.context import MemoryConfig, SessionConfig, StateConfig
from kodus_flow.config.models.observability import ObservabilityConfig
from kodus_flow.config.models.orchestrator import OrchestratorConfig, ToolEngineConfig
from kodus_flow.config.models.runtime import ExecutionRuntimeConfig, RuntimeRegistryConfig

# TOML values handed to the settings source by get_settings()
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Set the TOML configuration to be used by Settings."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by the merged TOML files."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return _toml_config.copy()


class Settings(BaseSettings):
    """Root configuration object.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml
    3. config/{KODUS_FLOW_ENV}.toml
    4. KODUS_FLOW_* environment variables (e.g. KODUS_FLOW_ORCHESTRATOR__TENANT_ID)
    """

    model_config = SettingsConfigDict(
        env_prefix="KODUS_FLOW_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="kodus-flow", description="Application name for logging/tracing")
    debug: bool = Field(default=False)

    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    tools: ToolEngineConfig = Field(default_factory=ToolEngineConfig)
    registry: RuntimeRegistryConfig = Field(default_factory=RuntimeRegistryConfig)
    runtime: ExecutionRuntimeConfig = Field(default_factory=ExecutionRuntimeConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Constructor args, then env vars, then TOML, then model defaults."""
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
