"""Exception hierarchy for the Kibela archive importer.

Fatal errors (configuration, connectivity, transaction log) abort the run
before any entry is processed. Entry-level errors are caught by the
orchestrator, counted as failures and the run moves on to the next entry.
"""


class MigrationError(Exception):
    """Base class for all importer errors."""


class ConfigError(MigrationError, ValueError):
    """Missing or invalid configuration / command-line flag."""


class ConnectivityError(MigrationError):
    """The destination team cannot be reached in apply mode."""


class ParseError(MigrationError):
    """An archive entry does not have the expected shape."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class DependencyResolutionError(MigrationError):
    """An author or group could neither be found nor created."""


class RemoteMutationError(MigrationError):
    """A creation call against the destination failed."""


class LogWriteError(MigrationError):
    """The transaction log cannot be created or written."""


__all__ = [
    'MigrationError',
    'ConfigError',
    'ConnectivityError',
    'ParseError',
    'DependencyResolutionError',
    'RemoteMutationError',
    'LogWriteError',
]
