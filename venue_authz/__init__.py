"""Venue-scoped authorization: a pure decision engine plus its SQL, YAML and FastAPI adapters."""

__version__ = "0.1.0"
