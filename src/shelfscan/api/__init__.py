# ABOUTME: HTTP surface for Shelfscan, built on FastAPI.
# ABOUTME: Exposes the application factory used by `shelfscan serve` and tests.

from shelfscan.api.app import create_app

__all__ = ["create_app"]
