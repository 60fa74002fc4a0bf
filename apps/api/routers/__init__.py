"""Routers package."""

from . import (
    health,
    auth,
    access,
    viewer,
    links,
)
