"""Document snapshot types."""

from .snapshot import DocumentSnapshot

__all__ = ["DocumentSnapshot"]
