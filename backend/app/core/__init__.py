"""Core helpers: security, validation and the error taxonomy."""
