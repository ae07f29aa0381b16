import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y")


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value or None


@dataclass(frozen=True)
class Settings:
    """
    Centralized exporter configuration.

    Backed by environment variables so the same image can point at any
    SonarQube instance without code changes. Values are read when a
    Settings instance is created, not at import time.

    Upstream:
      - SONAR_URL: base URL of the SonarQube server
      - SONAR_TOKEN: user token (sent as basic-auth user, SonarQube style)
      - SONAR_TIMEOUT_SECONDS: per-request timeout for upstream calls
      - SONAR_PAGE_SIZE: project page size (only the first page is read)

    Exporter:
      - SONAR_EXPORTER_PROPERTIES_FILE: optional key=value file holding the
        prometheus.export.* flags (environment variables take precedence)
      - SONAR_EXPORTER_LOG_LEVEL / SONAR_EXPORTER_ENV / PORT

    Tracing:
      - SONAR_EXPORTER_OTEL_ENABLED: master switch for OpenTelemetry
      - OTEL_EXPORTER_OTLP_ENDPOINT / OTEL_SERVICE_NAME
    """

    app_name: str = "sonar-exporter"

    sonar_url: str = field(
        default_factory=lambda: os.getenv("SONAR_URL", "http://localhost:9000").rstrip("/")
    )
    sonar_token: Optional[str] = field(default_factory=lambda: _env_optional("SONAR_TOKEN"))
    sonar_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("SONAR_TIMEOUT_SECONDS", "10"))
    )
    sonar_page_size: int = field(
        default_factory=lambda: int(os.getenv("SONAR_PAGE_SIZE", "500"))
    )

    properties_file: Optional[str] = field(
        default_factory=lambda: _env_optional("SONAR_EXPORTER_PROPERTIES_FILE")
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("SONAR_EXPORTER_LOG_LEVEL", "INFO")
    )
    environment: str = field(default_factory=lambda: os.getenv("SONAR_EXPORTER_ENV", "dev"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "9100")))

    otel_enabled: bool = field(
        default_factory=lambda: _env_bool("SONAR_EXPORTER_OTEL_ENABLED", "true")
    )
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv(
            "OTEL_EXPORTER_OTLP_ENDPOINT",
            "http://otelcol-opentelemetry-collector:4317",
        )
    )
    otel_service_name: str = field(
        default_factory=lambda: os.getenv("OTEL_SERVICE_NAME", "sonar-exporter")
    )

    def __post_init__(self) -> None:
        # SonarQube caps ps at 500; anything outside 1..500 is rejected upstream.
        if not 1 <= self.sonar_page_size <= 500:
            object.__setattr__(self, "sonar_page_size", 500)


def get_settings() -> Settings:
    return Settings()
