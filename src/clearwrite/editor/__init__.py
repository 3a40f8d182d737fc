"""Editor package containing the document model and offset mapping."""

from . import document_model, offset_mapper

__all__ = ["document_model", "offset_mapper"]
