"""Redis store adapter."""
from kvlife.store.client import StoreClient, connect

__all__ = [
    "StoreClient",
    "connect",
]
