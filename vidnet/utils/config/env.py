from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "vidnet"
    environment: str = "local"
    debug: bool = True

    mongo_port: int = 27017
    mongo_host: str = "localhost"
    mongo_db: str = "vidnet"
    mongo_password: str | None = None
    mongo_params: str | None = None
    mongo_user: str | None = None
    mongo_url: str | None = None

    jwt_algorithm: str = "HS256"
    jwt_secret_key: str = "very-secret-key"
    access_token_expires_minutes: int = 15
    refresh_token_expires_days: int = 10
    cookie_secure: bool = True

    redis_db: int = 0
    redis_port: int = 6379
    redis_host: str = "localhost"
    redis_password: str | None = None

    subscription_toggle_window_seconds: int = 1
    change_password_window_seconds: int = 30
    login_attempt_limit: int = 10
    login_attempt_window_seconds: int = 300

    s3_endpoint_url: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_bucket: str = "vidnet-media"
    media_public_base_url: str = ""

    cors_origins: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_file=(".env",), case_sensitive=True, extra="ignore")

    @property
    def mongo_uri(self) -> str:
        if self.mongo_url:
            return self.mongo_url
        auth = ""
        if self.mongo_user and self.mongo_password:
            auth = f"{self.mongo_user}:{self.mongo_password}@"
        params = self.mongo_params or "retryWrites=true&w=majority"
        return f"mongodb+srv://{auth}{self.mongo_host}/{self.mongo_db}?{params}"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
