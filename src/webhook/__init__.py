"""HTTP listener receiving registry notifications."""

from webhook.server import create_app

__all__ = ["create_app"]
