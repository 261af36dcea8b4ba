from pathlib import Path
from typing import Any, Literal

from pydantic import Field, NonNegativeInt, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.application.migration import AlgorithmSettings
from cadence.application.queue_builder import QueueConfig
from cadence.application.session import SessionConfig
from cadence.domain import constants as C

CONFIG_FILE = Path.home() / ".config/cadence/config.toml"


class EngineConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Config file (~/.config/cadence/config.toml)
    2. Environment variables (CADENCE_*)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        toml_file=CONFIG_FILE,
        extra="ignore",
    )

    # Algorithm
    algorithm: str = C.DEFAULT_ALGORITHM
    algorithm_config: dict[str, Any] = Field(default_factory=dict)

    # Daily queue
    max_new_cards_per_day: NonNegativeInt = C.DEFAULT_MAX_NEW_PER_DAY
    max_review_cards_per_day: NonNegativeInt = C.DEFAULT_MAX_REVIEW_PER_DAY
    learning_ahead_limit: NonNegativeInt = C.DEFAULT_LEARNING_AHEAD_MINUTES  # minutes
    review_ahead_limit: NonNegativeInt = C.DEFAULT_REVIEW_AHEAD_DAYS  # days
    new_card_order: Literal["created", "due", "interval", "random"] = "created"
    review_card_order: Literal["created", "due", "interval", "random"] = "due"
    max_session_minutes: float | None = None

    # Storage (YAML item files, one per scope)
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/cadence")

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # init (CLI) wins over env, env wins over the file
        if CONFIG_FILE.exists():
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=CONFIG_FILE),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: Any) -> Path:
        return Path(v).expanduser()

    def queue_config(self) -> QueueConfig:
        return QueueConfig(
            max_new_cards_per_day=self.max_new_cards_per_day,
            max_review_cards_per_day=self.max_review_cards_per_day,
            learning_ahead_limit=self.learning_ahead_limit,
            review_ahead_limit=self.review_ahead_limit,
            new_card_order=self.new_card_order,
            review_card_order=self.review_card_order,
        )

    def session_config(self) -> SessionConfig:
        return SessionConfig(
            max_new_cards=self.max_new_cards_per_day,
            max_review_cards=self.max_review_cards_per_day,
            learning_ahead_limit=self.learning_ahead_limit,
        )

    def algorithm_settings(self) -> AlgorithmSettings:
        return AlgorithmSettings(name=self.algorithm, config=dict(self.algorithm_config))


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> EngineConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in EngineConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer)
    """
    # Typer passes every option; only explicit values override lower layers
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return EngineConfig(**overrides)
