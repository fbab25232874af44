"""Configuration module."""

from jojo_orders.config.settings import Settings

__all__ = ["Settings"]
