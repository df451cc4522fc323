from .settings import Settings, SSHDefaults, get_settings

__all__ = ["Settings", "SSHDefaults", "get_settings"]
