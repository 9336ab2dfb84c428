"""Configuration module for tenant-auth."""

from tenant_auth.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
