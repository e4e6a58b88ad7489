from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS / Frontend
    frontend_base_url: str = Field(
        default="http://localhost:3000", validation_alias="FRONTEND_BASE_URL"
    )
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # AWS / data
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    ddb_table_name: str | None = Field(default=None, validation_alias="DDB_TABLE_NAME")
    files_bucket_name: str | None = Field(default=None, validation_alias="FILES_BUCKET_NAME")
    files_url_expires_seconds: int = Field(
        default=3600, validation_alias="FILES_URL_EXPIRES_SECONDS"
    )

    # Upload limits
    max_files_per_upload: int = Field(default=10, validation_alias="MAX_FILES_PER_UPLOAD")
    max_file_size_bytes: int = Field(
        default=25 * 1024 * 1024, validation_alias="MAX_FILE_SIZE_BYTES"
    )

    # Auth (Cognito)
    cognito_user_pool_id: str | None = Field(
        default=None, validation_alias="COGNITO_USER_POOL_ID"
    )
    cognito_client_id: str | None = Field(
        default=None, validation_alias="COGNITO_CLIENT_ID"
    )
    cognito_region: str = Field(default="us-east-1", validation_alias="COGNITO_REGION")

    # Cursor tokens handed to clients are encrypted with this key.
    pagination_token_key: str | None = Field(
        default=None, validation_alias="PAGINATION_TOKEN_KEY"
    )

    # Workflow defaults
    default_currency: str = Field(default="USD", validation_alias="DEFAULT_CURRENCY")
    default_revision_owner: str = Field(
        default="estimator", validation_alias="DEFAULT_REVISION_OWNER"
    )
    default_list_limit: int = Field(default=50, validation_alias="DEFAULT_LIST_LIMIT")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development/staging may run with partial config for local work,
        but production must be fully configured.
        """
        if not self.is_production:
            return

        missing: list[str] = []

        if not self.ddb_table_name:
            missing.append("DDB_TABLE_NAME")
        if not self.files_bucket_name:
            missing.append("FILES_BUCKET_NAME")
        if not self.cognito_user_pool_id:
            missing.append("COGNITO_USER_POOL_ID")
        if not self.cognito_client_id:
            missing.append("COGNITO_CLIENT_ID")
        # Cursor encryption must never fall back to the dev default in prod.
        if not self.pagination_token_key:
            missing.append("PAGINATION_TOKEN_KEY")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        def _has(v: object) -> bool:
            return v is not None and str(v).strip() != ""

        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "frontend": {
                "frontend_base_url": self.frontend_base_url,
                "frontend_urls": self.frontend_urls,
            },
            "aws": {
                "aws_region": self.aws_region,
                "ddb_table_name": self.ddb_table_name,
                "files_bucket_name": self.files_bucket_name,
            },
            "auth": {
                "cognito_user_pool_id": self.cognito_user_pool_id,
                "cognito_client_id": self.cognito_client_id,
                "cognito_region": self.cognito_region,
            },
            "workflow": {
                "default_currency": self.default_currency,
                "default_revision_owner": self.default_revision_owner,
                "max_files_per_upload": self.max_files_per_upload,
                "max_file_size_bytes": self.max_file_size_bytes,
            },
            "pagination_token_key_configured": _has(self.pagination_token_key),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


# Module-level singleton.
settings = get_settings()
