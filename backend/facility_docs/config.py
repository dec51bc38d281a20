from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./facility_docs.db"

    secret_key: str = "change-me"
    access_token_expire_minutes: int = 10080
    allow_registration: bool = True

    # Physical objects live under {storage_root}/documents/...
    storage_root: str = "storage"

    main_max_upload_bytes: int = 10 * MB
    download_max_bytes: int = 100 * MB
    max_files_per_upload: int = 10

    default_per_page: int = 50
    max_per_page: int = 100

    run_migrations: bool = True
    rate_limit_enabled: bool = True
    log_level: str = "INFO"

    cors_origins: str = "http://localhost,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
