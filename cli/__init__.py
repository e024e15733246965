"""Operator CLI for the fuel shift reconciliation service."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# Resolve ``cli.app`` lazily to the module; the Typer instance is ``cli.app.app``.

__all__ = []
