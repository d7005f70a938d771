"""
TableCopy database plugins

One module per database family. Each provides a Dialect subclass and a
connect(profile, verbose) function returning a ConnectionHandle. Driver
modules are imported only when their family is used.
"""

from core.errors import ConfigurationError


def connect(profile, verbose: bool = False):
    """Open a ConnectionHandle for a ConnectionProfile"""
    if profile.driver == 'postgresql':
        from .postgresql_adapter import connect as connect_postgresql
        return connect_postgresql(profile, verbose=verbose)
    if profile.driver == 'mysql':
        from .mysql_adapter import connect as connect_mysql
        return connect_mysql(profile, verbose=verbose)
    if profile.driver == 'sqlite':
        from .sqlite_adapter import connect as connect_sqlite
        return connect_sqlite(profile, verbose=verbose)
    raise ConfigurationError(
        f"Connection {profile.name}: unsupported driver '{profile.driver}'",
        details={'driver': profile.driver},
    )


__all__ = ['connect']
