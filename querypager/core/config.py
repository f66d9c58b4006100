from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Query Pager API"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"

    # Database (any async SQLAlchemy URL; SQLite for local dev)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./querypager_dev.db",
        alias="DATABASE_URL",
    )

    # Multi-tenancy default
    default_client_id: str = Field(default="default", alias="DEFAULT_CLIENT_ID")

    # Pagination defaults (?page=&limit=&order_by=&order=)
    pagination_default_limit: int = Field(default=15, alias="PAGINATION_DEFAULT_LIMIT")
    pagination_max_limit: int = Field(default=1000, alias="PAGINATION_MAX_LIMIT")
    pagination_default_order_by: str = Field(
        default="created_at", alias="PAGINATION_DEFAULT_ORDER_BY",
    )

    # Result cache
    cache_default_ttl: int = Field(
        default=31_536_000, alias="CACHE_DEFAULT_TTL",
    )  # one year, i.e. until a write flushes the table tag
    cache_max_entries: int = Field(default=1024, alias="CACHE_MAX_ENTRIES")

    # Spreadsheet export
    export_filename_prefix: str = Field(default="export", alias="EXPORT_FILENAME_PREFIX")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

settings = Settings()
