"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"

    # SAT reporting cycle (17-17). All calendar math runs in the authority's zone.
    SAT_TIMEZONE: str = "America/Mexico_City"
    SAT_PERIOD_START_DAY: int = 17  # Day of the previous month the window opens
    SAT_PERIOD_END_DAY: int = 16  # Day of the reported month the window closes
    SAT_DEADLINE_DAY: int = 17  # Day of the following month the filing is due
    SAT_AVAILABLE_MONTHS: int = 12

    # SAT wire format
    SAT_XML_NAMESPACE: str = "http://www.uif.shcp.gob.mx/recepcion/veh"
    SAT_XML_SCHEMA_FILE: str = "veh.xsd"

    # Document storage ("local" or "s3")
    STORAGE_BACKEND: str = "local"
    LOCAL_STORAGE_PATH: str = "/tmp/dealer-aml-documents"
    S3_BUCKET: str = "dealer-aml-documents"
    S3_REGION: str = ""
    S3_ENDPOINT_URL: str = ""
    S3_URL_STYLE: str = ""  # "path" or "virtual"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
