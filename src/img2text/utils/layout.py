"""
Layout reconstruction module for the image-to-text pipeline.

Provides:
- Bounding box and text block data model
- Row-aware reading-order sorting
- Reassembly of OCR blocks into paragraphs and rows
"""

import functools
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Dict, Any, Sequence

logger = logging.getLogger(__name__)


ROW_THRESHOLD = 20
COLUMN_GAP = "    "
PARAGRAPH_SEPARATOR = "\n\n"
NO_TEXT_FOUND = "No text was found in the image."


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """Bounding box in image pixel coordinates (y grows downward)."""
    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[int, int]:
        return ((self.x0 + self.x1) // 2, (self.y0 + self.y1) // 2)

    def to_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x0, self.y0, self.x1, self.y1)

    def to_dict(self) -> Dict[str, int]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}

    @classmethod
    def from_xywh(cls, x: int, y: int, w: int, h: int) -> 'BoundingBox':
        return cls(x, y, x + w, y + h)

    @classmethod
    def union(cls, boxes: Sequence['BoundingBox']) -> 'BoundingBox':
        """Smallest box containing all ``boxes``."""
        if not boxes:
            raise ValueError("Cannot compute the union of zero boxes")
        return cls(
            min(b.x0 for b in boxes),
            min(b.y0 for b in boxes),
            max(b.x1 for b in boxes),
            max(b.y1 for b in boxes)
        )


@dataclass(frozen=True)
class TextBlock:
    """A spatially located fragment of OCR output."""
    text: str
    bbox: BoundingBox
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "bbox": self.bbox.to_dict(),
            "confidence": self.confidence
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextBlock':
        bbox = data["bbox"]
        if isinstance(bbox, dict):
            box = BoundingBox(int(bbox["x0"]), int(bbox["y0"]), int(bbox["x1"]), int(bbox["y1"]))
        else:
            box = BoundingBox(*(int(v) for v in bbox))
        return cls(text=data.get("text", ""), bbox=box, confidence=data.get("confidence"))


# ============================================================================
# Reading Order
# ============================================================================

def sort_blocks(
    blocks: Sequence[TextBlock],
    row_threshold: int = ROW_THRESHOLD
) -> List[TextBlock]:
    """
    Sort blocks top-to-bottom, left-to-right within a visual row.

    Two blocks whose ``y0`` differ by less than ``row_threshold`` compare
    by ``x0``; any other pair compares by ``y0``. The row test is made per
    pair, so this is not equivalent to sorting on a ``(y0, x0)`` key.

    Returns:
        New list; ``blocks`` is left untouched
    """
    def compare(a: TextBlock, b: TextBlock) -> int:
        if abs(a.bbox.y0 - b.bbox.y0) < row_threshold:
            return a.bbox.x0 - b.bbox.x0
        return a.bbox.y0 - b.bbox.y0

    return sorted(blocks, key=functools.cmp_to_key(compare))


def reconstruct_text(
    blocks: Sequence[TextBlock],
    row_threshold: int = ROW_THRESHOLD,
    column_gap: str = COLUMN_GAP,
    paragraph_separator: str = PARAGRAPH_SEPARATOR,
    no_text_message: str = NO_TEXT_FOUND
) -> str:
    """
    Reassemble OCR blocks into human-readable text.

    Blocks are sorted with :func:`sort_blocks`, then scanned once. A block
    starts a new paragraph when no row is open or when its ``y0`` is at
    least ``row_threshold`` below the row's reference ``y0``; otherwise it
    continues the row after ``column_gap``. The separator is skipped only
    before the first block. The reference is the ``y0`` of
    the block that opened the paragraph and is not updated within the row.

    Args:
        blocks: OCR text blocks in any order
        row_threshold: Vertical distance (pixels) separating rows
        column_gap: Marker inserted between blocks of the same row
        paragraph_separator: Marker inserted before each new paragraph
        no_text_message: Returned when there is nothing to show

    Returns:
        Reconstructed text, or ``no_text_message``
    """
    parts: List[str] = []
    current_row_y: Optional[int] = None

    for block in sort_blocks(blocks, row_threshold=row_threshold):
        text = (block.text or "").strip()
        y0 = block.bbox.y0

        if current_row_y is None or y0 - current_row_y >= row_threshold:
            if parts:
                parts.append(paragraph_separator)
            current_row_y = y0
        else:
            parts.append(column_gap)

        parts.append(text)

    result = "".join(parts)

    if not result.strip():
        logger.debug(f"No text found in {len(blocks)} block(s)")
        return no_text_message

    logger.debug(f"Reconstructed {len(blocks)} block(s) into {len(result)} characters")
    return result
