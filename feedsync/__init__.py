"""Identity resolution and live feed synchronisation for a social-feed client."""

__version__ = "1.0.0"
