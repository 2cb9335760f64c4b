"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Wildlife Tracker API"
    app_version: str = "1.0.0"
    api_prefix: str = "/api"
    environment: str = "development"  # development|production
    database_url: str = "sqlite:///./wildtrack.db"

    # Static shared secrets
    api_key: str = ""
    admin_api_key: str = ""
    cron_secret: str = ""
    session_secret: str = ""
    session_token_ttl_minutes: int = 7 * 24 * 60

    allowed_origins: str = "http://localhost:3000,http://localhost:5000"
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_requests: int = 100
    auth_rate_limit_max_requests: int = 10
    # Proxies in front of the app that append to X-Forwarded-For; 0 trusts none
    trusted_proxy_hops: int = 0

    # Blob storage for observation images
    blob_root: str = "./data/blobs"
    image_max_bytes: int = 10 * 1024 * 1024
    map_layers_dir: str = "./data/map"

    # EmailJS transactional email
    emailjs_api_url: str = "https://api.emailjs.com/api/v1.0/email/send"
    emailjs_service_id: str = ""
    emailjs_template_id: str = ""
    emailjs_pin_template_id: str = ""
    emailjs_public_key: str = ""
    emailjs_private_key: str = ""
    email_from_name: str = "Wildlife Tracker"
    notification_emails: str = ""  # comma separated

    # NASA FIRMS fire feed
    firms_api_url: str = "https://firms.modaps.eosdis.nasa.gov/api/area/csv"
    firms_map_key: str = ""
    fire_default_days: int = 3
    fire_max_days: int = 5
    fire_alert_region: str = "USA"
    fire_check_days: int = 3

    # One-time passcodes
    passcode_backend: str = "memory"  # memory|database
    passcode_ttl_minutes: int = 15
    passcode_sweep_minutes: int = 5
    passcode_max_attempts: int = 5

    water_locations: str = "tuludi,sable-alley,little-sable"
    revocation_fail_open: bool = True
    http_timeout: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def notification_recipients(self) -> list[str]:
        return _split_csv(self.notification_emails)

    @property
    def origins(self) -> list[str]:
        return _split_csv(self.allowed_origins)

    @property
    def water_location_keys(self) -> list[str]:
        return _split_csv(self.water_locations)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()

__all__ = ["settings", "Settings"]
