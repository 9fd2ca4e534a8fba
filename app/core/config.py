from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://sync:sync@db:5432/sync"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # --- Invite codes ---
    INVITE_CODE_LENGTH: int = 8
    # Excludes the ambiguous glyphs 0/O and 1/I
    INVITE_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    INVITE_CODE_EXPIRY_DAYS: int = 7
    INVITE_CODE_MAX_ATTEMPTS: int = 5

    # --- Daily sessions ---
    # Offset added to UTC before taking the calendar date. 0 = UTC midnight.
    DAY_BOUNDARY_UTC_OFFSET_MINUTES: int = 0
    # "any_completed" or "matched_only"
    STREAK_POLICY: str = "any_completed"
    QUESTION_AUDIENCE: str = "for_couples"
    DEFAULT_CATEGORIES: str = "daily_life,heart,history,fun"

    # --- Presence ---
    PRESENCE_HEARTBEAT_SECONDS: int = 25
    PRESENCE_TIMEOUT_SECONDS: int = 60

    # Opt-in test/dev switches: the self-join bypass on POST /couples/redeem and
    # client-supplied snapshots on POST /achievements/{user_id}/check.
    # Set ALLOW_DEV_OVERRIDES=true explicitly; ignored when APP_ENV=production.
    ALLOW_DEV_OVERRIDES: bool = False

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def default_categories_list(self) -> list[str]:
        return [c.strip() for c in self.DEFAULT_CATEGORIES.split(",") if c.strip()]

    @property
    def dev_overrides_enabled(self) -> bool:
        return self.ALLOW_DEV_OVERRIDES and self.APP_ENV != "production"


settings = Settings()
