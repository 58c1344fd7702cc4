"""Klaverjas (Rotterdam) multiplayer game server."""

__version__ = "0.1.0"
