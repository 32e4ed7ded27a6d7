"""Language toolchain adapters."""

from upgrader.adapters.languages.node import NodeAdapter

__all__ = ["NodeAdapter"]
