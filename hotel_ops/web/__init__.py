"""HTTP surface for the operations ledger."""

from .app import create_app

__all__ = ["create_app"]
