"""Version information for the wired hotspot controller."""

APP_VERSION = "1.0.0"

__all__ = ["APP_VERSION"]
