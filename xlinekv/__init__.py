"""Node state, key ranges and command conflicts, request validation and watch handling for a distributed key-value server."""

__version__ = "0.1.0"

__all__ = ["state", "command", "kv_check", "watch"]