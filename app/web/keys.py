"""Typed application keys."""

from aiohttp import web

from app.services.container import ServiceContainer


CONTAINER_KEY = web.AppKey("container", ServiceContainer)
