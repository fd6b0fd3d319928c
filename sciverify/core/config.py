from typing import ClassVar, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    GITHUB_TOKEN: Optional[str] = Field(default=None, description="Bearer token for GitHub REST v3 calls")

    # External HTTP
    HTTP_TIMEOUT_SECONDS: float = Field(default=15.0, description="Timeout for a single external HTTP call")
    HTTP_USER_AGENT: str = Field(
        default="sciverify-verification-engine/1.0",
        description="User-Agent header sent to external data sources",
    )

    # Cross-cutting runner
    CROSS_CUTTING_TIMEOUT_SECONDS: float = Field(
        default=120.0, description="Global timeout for the whole cross-cutting batch"
    )
    CROSS_CUTTING_TIMEOUT_POLICY: Literal["discard_all", "keep_finished"] = Field(
        default="discard_all",
        description="On batch timeout: drop every result, or keep verifiers that already finished",
    )

    # Score -> badge mapping
    BADGE_GREEN_THRESHOLD: float = Field(default=0.8, description="Minimum score for a green badge")
    BADGE_AMBER_THRESHOLD: float = Field(default=0.5, description="Minimum score for an amber badge")
    PASS_THRESHOLD: float = Field(default=0.5, description="Minimum score for passed=True")

    LOG_LEVEL: str = Field(default="INFO", description="Log level for sciverify loggers")

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
