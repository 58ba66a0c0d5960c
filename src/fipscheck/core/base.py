"""Base classes for configuration and state models.

- Closeable Protocol for resource cleanup
- BaseCloseable for automatic cleanup cascade
- BaseConfig for configuration models
- BaseState for runtime state models

Kept apart from config.py so that log.py can import them without a
circular dependency.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

# Field metadata key (json_schema_extra) controlling template
# substitution: False skips the field, "regex" escapes substituted values
TEMPLATE_KEY = "template"


@runtime_checkable
class Closeable(Protocol):
    """Protocol for objects that support close()."""

    def close(self) -> None:
        """Release resources."""
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable children.

    Subclasses become context managers. close() walks the model
    fields and calls close() on every child implementing it, and
    keeps going when one of them fails:

    State.__exit__() -> Config.close() -> Logger.close() -> Sink.close()
    """

    def close(self):
        """Close all closeable child objects."""
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None:
                continue

            if isinstance(child, Closeable):
                try:
                    child.close()
                except Exception as e:
                    print(
                        f"Warning: Error closing {field_name}: {e}",
                        file=sys.stderr,
                    )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Marker base for configuration sections (YAML/env/CLI)."""
    pass


class BaseState(BaseCloseable):
    """Marker base for runtime state sections (mutated during a run)."""
    pass


__all__ = [
    "TEMPLATE_KEY", "Closeable", "BaseCloseable", "BaseConfig", "BaseState",
]
