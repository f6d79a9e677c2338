from .client import ClientFactory, KvClient
from .config import ClientConfig, StoreConfig
from .status import Status

__all__ = ["KvClient", "ClientFactory", "ClientConfig", "StoreConfig", "Status"]
