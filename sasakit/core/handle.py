"""
Owning-handle base class.

Every wrapped native resource (classifier, structure, result, tree) is held
by exactly one handle object. The handle releases the resource exactly once:
explicitly through ``close()``, on leaving a ``with`` block, or when the
handle itself is garbage collected. After release the handle refuses every
query with ``StaleReferenceError`` instead of touching freed memory.

Handles are not thread-safe. A handle may be passed between threads, but
must not be used from two threads at once; read-only sharing of a classifier
or of an unmodified structure is the only supported concurrent use.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import StaleReferenceError

logger = logging.getLogger(__name__)


class NativeHandle:
    """
    Base class for objects that exclusively own a native resource.

    Subclasses store the native object in ``self._native`` and call
    ``self._require_open()`` before every access.
    """

    kind: str = "handle"

    def __init__(self, native: Any):
        self._native: Optional[Any] = native

    @property
    def closed(self) -> bool:
        """Whether the native resource has been released."""
        return self._native is None

    def close(self) -> None:
        """Release the native resource. Calling this more than once is a no-op."""
        if self._native is None:
            return
        native, self._native = self._native, None
        self._release(native)
        logger.debug(f"Released {self.kind} {self._describe()}")

    def _release(self, native: Any) -> None:
        """Hook for subclasses holding extra native state."""
        del native

    def _require_open(self) -> Any:
        if self._native is None:
            raise StaleReferenceError(
                f"{self.kind} {self._describe()} has been released"
            )
        return self._native

    def _describe(self) -> str:
        return f"at 0x{id(self):x}"

    def __enter__(self):
        self._require_open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"{self.__class__.__name__}({self._describe()}, {state})"
