from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Riskzap Health API"
    api_prefix: str = "/api"
    environment: str = "development"
    database_url: str = "sqlite:///./riskzap.db"

    maintenance_token: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
