"""pulseboard: analytics core and provider clients behind the dashboard API."""

__version__ = "0.1.0"
