import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_list(val: str | None, default: list[str]) -> list[str]:
    if val is None:
        return list(default)
    return [item.strip().lower() for item in val.split(",") if item.strip()]


class Settings:
    def __init__(self) -> None:
        self.GOOGLE_MAPS_API_KEY: str | None = os.getenv("GOOGLE_MAPS_API_KEY") or None
        # The timezone endpoint is often keyed separately (no referrer restriction).
        self.GOOGLE_TIMEZONE_API_KEY: str | None = (
            os.getenv("GOOGLE_TIMEZONE_API_KEY") or self.GOOGLE_MAPS_API_KEY
        )
        self.GOOGLE_MAPS_BASE_URL: str = os.getenv(
            "GOOGLE_MAPS_BASE_URL", "https://maps.googleapis.com/maps/api"
        )
        self.PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "5.0"))
        self.PROVIDER_MIN_INTERVAL: float = float(os.getenv("PROVIDER_MIN_INTERVAL", "0.0"))

        self.NEARBY_SEARCH_RADIUS_M: int = int(os.getenv("NEARBY_SEARCH_RADIUS_M", "300"))
        self.NEAREST_FALLBACK_LIMIT: int = int(os.getenv("NEAREST_FALLBACK_LIMIT", "10"))

        self.AUTOCOMPLETE_DEBOUNCE_SECONDS: float = float(
            os.getenv("AUTOCOMPLETE_DEBOUNCE_SECONDS", "0.3")
        )
        self.AUTOCOMPLETE_MAX_RESULTS: int = int(os.getenv("AUTOCOMPLETE_MAX_RESULTS", "10"))
        self.AUTOCOMPLETE_COUNTRIES: list[str] = _as_list(
            os.getenv("AUTOCOMPLETE_COUNTRIES"), ["id", "sg", "my", "th", "vn"]
        )

        self.HOME_COUNTRY: str = os.getenv("HOME_COUNTRY", "Indonesia")
        self.DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "Asia/Jakarta")

        self.TIMEZONE_RATE_LIMIT_PER_MINUTE: int = int(
            os.getenv("TIMEZONE_RATE_LIMIT_PER_MINUTE", "60")
        )
        self.TRUST_PROXY_HEADERS: bool = _as_bool(os.getenv("TRUST_PROXY_HEADERS"), True)
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
