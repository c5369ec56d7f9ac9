"""Status pipeline: column grouping, transitions and gesture intents."""

from rentboard.pipeline.dragdrop import DragController
from rentboard.pipeline.engine import PipelineEngine

__all__ = [
    "DragController",
    "PipelineEngine",
]
