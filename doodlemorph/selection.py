"""
Selection Module - Selection Classifier
=======================================
Decides which generation tool applies to the current selection.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from doodlemorph.canvas import Canvas, Shape, ShapeType


class SelectionKind(Enum):
    """What the user currently has selected."""
    DRAWINGS = "drawings"   # Strokes, geo shapes and arrows
    IMAGE = "image"         # Exactly one image
    IMAGES = "images"       # Two or more images
    NONE = "none"           # Nothing, or nothing a tool can use


DRAWING_SHAPE_TYPES = (ShapeType.DRAW, ShapeType.GEO, ShapeType.ARROW)


@dataclass
class SelectionType:
    """
    Classified selection.

    Attributes:
        kind: Selection kind
        count: Number of shapes the tool will work on
        shapes: Those shapes, in selection order
    """
    kind: SelectionKind
    count: int = 0
    shapes: List[Shape] = field(default_factory=list)


def detect_selection_type(canvas: Canvas) -> SelectionType:
    """
    Classify the canvas selection.

    Mixed drawings and images, or selections with only unsupported
    shapes, classify as NONE.
    """
    shapes = canvas.get_selected_shapes()
    if not shapes:
        return SelectionType(SelectionKind.NONE)

    drawings = [s for s in shapes if s.type in DRAWING_SHAPE_TYPES]
    images = [s for s in shapes if s.type == ShapeType.IMAGE]

    if drawings and not images:
        return SelectionType(SelectionKind.DRAWINGS, len(drawings), drawings)

    if not drawings and len(images) == 1:
        return SelectionType(SelectionKind.IMAGE, 1, images)

    if not drawings and len(images) > 1:
        return SelectionType(SelectionKind.IMAGES, len(images), images)

    return SelectionType(SelectionKind.NONE)
