"""External API clients (Mapillary Graph API, the round endpoint)."""
