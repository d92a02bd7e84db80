"""Wired-aware Wi-Fi hotspot controller for NetworkManager hosts."""

from typing import Any

from .version import APP_VERSION


def create_app(*args: Any, **kwargs: Any):
    from .app import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = ["create_app", "APP_VERSION"]
