"""Finding overlay: annotations, summary items and corrections."""

from .corrections import CorrectionApplier
from .engine import Annotation, OverlayEngine, OverlayState, SummaryItem

__all__ = ["Annotation", "CorrectionApplier", "OverlayEngine", "OverlayState", "SummaryItem"]
