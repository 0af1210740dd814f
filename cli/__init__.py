"""Command line tools for the SenseBox monitor."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# ``cli.app`` must keep resolving to the module, not the Typer instance, so
# tests can monkeypatch ``cli.app.ApiClient`` and friends.

__all__ = []
