from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PRODUCT_UPDATER_", env_file=".env")

    # Update Server Configuration
    API_URL: str = "http://localhost:4000/api"
    API_TIMEOUT: float = 5.0
    PING_TIMEOUT: float = 2.0  # Liveness checks must not block the host
    RESPONSE_CACHE_TTL: int = 600

    # Product Info
    PRODUCT_ID: str = ""
    PRODUCT_FILE: str = ""  # e.g. "my-plugin/my-plugin.php"
    PRODUCT_NAME: str = ""
    PRODUCT_VERSION: str = "0.0.0"
    LICENSE_ENABLED: bool = False

    # Host Site Info (sent with every request)
    SITE_URL: str = ""
    SITE_LOCALE: str = ""  # Detected from the environment when empty
    PLATFORM_VERSION: str = ""

    # Database
    DATABASE_URL: str = "sqlite:///product_updater.db"

    # Shared registry document for every product on the host
    REGISTRY_KEY: str = "update_products"

    # Sync Configuration
    SYNC_INTERVAL_HOURS: int = 1
    SCHEDULER_ENABLED: bool = True  # Off when the host runs on_periodic_sync itself

    LOG_LEVEL: str = "INFO"

settings = Settings()
