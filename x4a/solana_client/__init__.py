from .client import LedgerClient

__all__ = ["LedgerClient"]
