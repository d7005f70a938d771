"""TableCopy configuration"""

from .settings import (
    ConfigManager,
    ConnectionProfile,
    TableCopySettings,
    get_config,
    load_settings,
)

__all__ = [
    'ConfigManager',
    'ConnectionProfile',
    'TableCopySettings',
    'get_config',
    'load_settings',
]
