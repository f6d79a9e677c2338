class KvBenchError(Exception):
    """Base exception for kvbench errors."""


class StoreError(KvBenchError):
    """The transactional store failed (conflict, connectivity, commit)."""


class DecodeError(KvBenchError):
    """Stored bytes could not be parsed into a field mapping."""


class ConfigError(KvBenchError, ValueError):
    """Invalid configuration value; the session cannot be initialized."""
