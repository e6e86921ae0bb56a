"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Public base URL of this API (used to build the provider webhook URL)
    API_PUBLIC_URL: str = "https://api.example.com"

    # Portal frontends (provider redirects here after verification)
    INVESTOR_PORTAL_URL: str = "https://investor.example.com"
    ISSUER_PORTAL_URL: str = "https://issuer.example.com"

    # Verification provider (identity/KYC + AML)
    VERIFICATION_OAUTH_URL: str = "https://auth.verification.example.com/oauth2/token"
    VERIFICATION_API_BASE_URL: str = "https://trial-server.verification.example.com"
    VERIFICATION_CLIENT_ID: str = ""
    VERIFICATION_CLIENT_SECRET: str = ""
    VERIFICATION_WEBHOOK_SECRET: str = ""  # Empty = accept unsigned webhooks (dev only)
    VERIFICATION_TIMEOUT_SECONDS: float = 15.0
    VERIFICATION_MAX_ATTEMPTS: int = 3
    VERIFICATION_DETAIL_FETCH_DELAY_SECONDS: float = 3.0  # Let trailing webhooks land
    VERIFICATION_DEFAULT_LINK_TTL_SECONDS: int = 86400
    VERIFICATION_LIVENESS_CONFIDENCE: int = 90
    VERIFICATION_APPROVAL_TARGET: str = "ACURIS"  # or DOWJONES
    VERIFICATION_WEBHOOK_MAX_PAYLOAD_BYTES: int = 1024 * 1024

    # Provider form ids / names per portal
    VERIFICATION_INVESTOR_PERSONAL_FORM_ID: int = 1036131
    VERIFICATION_INVESTOR_CORPORATE_FORM_ID: int = 1015520
    VERIFICATION_ISSUER_CORPORATE_FORM_ID: int = 1015520
    VERIFICATION_INVESTOR_CORPORATE_FORM_NAME: str = "Business End User Onboarding Form"
    VERIFICATION_ISSUER_CORPORATE_FORM_NAME: str = "Business End User Onboarding Form"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # OpenTelemetry (optional)
    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "onboarding-api"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ""
    OTEL_EXPORTER_OTLP_HEADERS: str = ""
    OTEL_SAMPLE_RATE: float = 0.1

    # Rate Limiting (requests per minute)
    RATE_LIMIT_WEBHOOK: int = 100  # Provider webhooks
    RATE_LIMIT_API: int = 60  # General API

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def verification_webhook_url(self) -> str:
        """Webhook URL registered with the verification provider."""
        return f"{self.API_PUBLIC_URL.rstrip('/')}/webhooks/verification"

    def portal_redirect_url(self, portal: str) -> str:
        """Where the provider sends the user after finishing verification."""
        base = self.INVESTOR_PORTAL_URL if portal == "investor" else self.ISSUER_PORTAL_URL
        return f"{base.rstrip('/')}/verification-callback"


settings = Settings()
