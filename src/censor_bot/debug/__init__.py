"""Debug server and observability tools."""

from censor_bot.debug.server import create_app

__all__ = ["create_app"]
