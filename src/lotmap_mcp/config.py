"""Configuration for the Lotmap MCP server."""

from pydantic_settings import BaseSettings


class LotmapConfig(BaseSettings):
    supabase_url: str | None = None
    supabase_key: str | None = None
    table_name: str = "properties"
    schema_optional_fields: list[str] = ["lot", "block"]
    suppress_transient_connectivity_warnings: bool = True
    development_mode: bool = False

    mapbox_token: str | None = None
    geocoding_base_url: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    geocoding_country: str = "US"
    geocoding_limit: int = 5
    geocode_cache_ttl_seconds: int = 3600
    geocode_cache_max_entries: int = 500
    search_min_query_length: int = 3

    timeout_seconds: float = 10.0
    max_retries: int = 2
    retry_backoff_seconds: float = 0.5

    model_config = {"env_prefix": "LOTMAP_"}

    @property
    def uses_remote_store(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)
