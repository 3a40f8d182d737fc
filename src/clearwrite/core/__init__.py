"""Core domain types shared by the editor, overlay and grammar packages."""

from .ranges import StructuralRange

__all__ = ["StructuralRange"]
