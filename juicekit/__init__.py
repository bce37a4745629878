"""Setting values, ambient sessions, statement handlers and transaction scopes for SQL mappers."""

__version__ = "0.1.0"

__all__ = ["handler", "scope", "session", "settings", "statement"]