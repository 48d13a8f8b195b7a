"""HTTP surface: webhooks, admin operations and the cron endpoint."""

from app.web.app import create_app


__all__ = ["create_app"]
