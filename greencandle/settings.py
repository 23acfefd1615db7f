from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    app_env: str = "dev"
    port: int = 8000
    log_level: str = "INFO"

    # Mongo
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "greencandle"

    # Trading calendar. Every trading day is pinned to this zone, never the server's.
    market_timezone: str = "Asia/Kolkata"

    # Nightly sweep that marks stale active calls as expired
    expiry_sweep_enabled: bool = False
    expiry_sweep_hour: int = 0
    expiry_sweep_minute: int = 5

    # comma separated; "*" allows any origin
    cors_origins: str = "http://localhost:3000,http://localhost:5000"

    # IMPORTANT: ignore extra keys in .env to avoid crashes
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

settings = Settings()
