from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, Field, HttpUrl, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./backend/)
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "ScriptInject"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    SENTRY_DSN: HttpUrl | None = None

    FRONTEND_HOST: str = "http://localhost:5173"
    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS] + [
            self.FRONTEND_HOST
        ]

    # Userscript encoder
    ENCODER_TOKEN_LENGTH: int = Field(default=16, ge=8, le=64)
    # Regenerate the backtick token while it occurs in the script source.
    ENCODER_REJECT_TOKEN_COLLISION: bool = False
    # Check the three-backtick invariant before returning payloads over HTTP.
    ENCODER_VERIFY_PAYLOAD: bool = True
    ENCODER_DECODE_FUNCTION_NAME: str = Field(
        default="ScriptInject_decode", pattern=r"^[A-Za-z_$][A-Za-z0-9_$]*$"
    )
    ENCODER_PRODUCT_NAME: str = "ScriptInject"


settings = Settings()  # type: ignore
