"""
Tests for layout reconstruction module.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def make_block(text, x0, y0, width=40, height=12):
    from img2text.utils.layout import BoundingBox, TextBlock

    return TextBlock(text=text, bbox=BoundingBox(x0, y0, x0 + width, y0 + height))


class TestBoundingBox:
    """Test BoundingBox class."""

    def test_bbox_properties(self):
        """Test bounding box computed properties."""
        from img2text.utils.layout import BoundingBox

        bbox = BoundingBox(10, 20, 110, 70)

        assert bbox.width == 100
        assert bbox.height == 50
        assert bbox.area == 5000
        assert bbox.center == (60, 45)
        assert bbox.to_tuple() == (10, 20, 110, 70)

    def test_bbox_from_xywh(self):
        """Test creation from x, y, width, height."""
        from img2text.utils.layout import BoundingBox

        assert BoundingBox.from_xywh(10, 20, 100, 50) == BoundingBox(10, 20, 110, 70)

    def test_bbox_union(self):
        """Test the smallest enclosing box."""
        from img2text.utils.layout import BoundingBox

        union = BoundingBox.union([BoundingBox(10, 5, 20, 15), BoundingBox(0, 8, 12, 30)])

        assert union == BoundingBox(0, 5, 20, 30)

    def test_bbox_union_empty(self):
        """Test that the union of nothing is an error."""
        from img2text.utils.layout import BoundingBox

        with pytest.raises(ValueError):
            BoundingBox.union([])


class TestTextBlock:
    """Test TextBlock serialization."""

    def test_to_dict(self):
        """Test block serialization."""
        block = make_block("Hello", 5, 10)

        data = block.to_dict()

        assert data["text"] == "Hello"
        assert data["bbox"] == {"x0": 5, "y0": 10, "x1": 45, "y1": 22}

    def test_from_dict(self):
        """Test parsing both the mapping and the tuple bbox forms."""
        from img2text.utils.layout import TextBlock, BoundingBox

        from_mapping = TextBlock.from_dict({"text": "a", "bbox": {"x0": 1, "y0": 2, "x1": 3, "y1": 4}})
        from_tuple = TextBlock.from_dict({"text": "a", "bbox": [1, 2, 3, 4], "confidence": 0.5})

        assert from_mapping.bbox == BoundingBox(1, 2, 3, 4)
        assert from_tuple.bbox == BoundingBox(1, 2, 3, 4)
        assert from_tuple.confidence == 0.5


class TestSortBlocks:
    """Test reading-order sorting."""

    def test_same_row_sorted_left_to_right(self):
        """Test that blocks within the threshold compare by x."""
        from img2text.utils.layout import sort_blocks

        right = make_block("right", 50, 10)
        left = make_block("left", 10, 12)
        below = make_block("below", 0, 100)

        ordered = sort_blocks([right, left, below])

        assert [b.text for b in ordered] == ["left", "right", "below"]

    def test_rows_sorted_top_to_bottom(self):
        """Test that blocks at least a threshold apart compare by y."""
        from img2text.utils.layout import sort_blocks

        lower = make_block("lower", 0, 40)
        upper = make_block("upper", 300, 20)

        ordered = sort_blocks([lower, upper])

        assert [b.text for b in ordered] == ["upper", "lower"]

    def test_input_not_mutated(self):
        """Test that the caller's sequence keeps its order."""
        from img2text.utils.layout import sort_blocks

        blocks = [make_block("b", 0, 100), make_block("a", 0, 0)]
        original = list(blocks)

        sort_blocks(blocks)

        assert blocks == original


class TestReconstructText:
    """Test paragraph and row reconstruction."""

    def test_row_grouping_and_new_paragraph(self):
        """Test the two-blocks-one-row, third-block-new-paragraph case."""
        from img2text.utils.layout import reconstruct_text

        blocks = [
            make_block("second", 50, 10),
            make_block("first", 10, 12),
            make_block("third", 0, 100),
        ]

        assert reconstruct_text(blocks) == "first    second\n\nthird"

    def test_threshold_boundary_starts_new_paragraph(self):
        """Test that a y difference of exactly 20 is a new paragraph."""
        from img2text.utils.layout import reconstruct_text

        blocks = [make_block("A", 0, 0), make_block("B", 100, 20)]

        assert reconstruct_text(blocks) == "A\n\nB"

    def test_just_inside_threshold_is_same_row(self):
        """Test that a y difference of 19 stays on the row."""
        from img2text.utils.layout import reconstruct_text

        blocks = [make_block("A", 0, 0), make_block("B", 100, 19)]

        assert reconstruct_text(blocks) == "A    B"

    def test_row_reference_is_not_updated(self):
        """Test that drift within a row is measured from the first block."""
        from img2text.utils.layout import reconstruct_text

        # Each step is 15px, but the third block is 30px below the row start
        blocks = [make_block("a", 0, 0), make_block("b", 10, 15), make_block("c", 20, 30)]

        assert reconstruct_text(blocks) == "a    b\n\nc"

    def test_text_is_trimmed(self):
        """Test that surrounding whitespace of each block is removed."""
        from img2text.utils.layout import reconstruct_text

        blocks = [make_block("  Hello \n", 0, 0), make_block("\tWorld  ", 100, 2)]

        assert reconstruct_text(blocks) == "Hello    World"

    def test_multiline_block_keeps_inner_newlines(self):
        """Test that only the edges of a block's text are stripped."""
        from img2text.utils.layout import reconstruct_text

        blocks = [make_block("line one\nline two\n", 0, 0)]

        assert reconstruct_text(blocks) == "line one\nline two"

    def test_empty_blocks(self):
        """Test the no-text sentinel for no input."""
        from img2text.utils.layout import reconstruct_text, NO_TEXT_FOUND

        assert reconstruct_text([]) == NO_TEXT_FOUND
        assert NO_TEXT_FOUND != ""

    def test_whitespace_only_blocks(self):
        """Test the no-text sentinel when every block is blank."""
        from img2text.utils.layout import reconstruct_text, NO_TEXT_FOUND

        blocks = [make_block("  ", 0, 0), make_block("\n", 0, 200)]

        assert reconstruct_text(blocks) == NO_TEXT_FOUND

    def test_leading_blank_block(self):
        """Test that only the very first block skips the separator, even when blank."""
        from img2text.utils.layout import reconstruct_text

        blocks = [make_block(" ", 0, 0), make_block("B", 0, 100)]

        assert reconstruct_text(blocks) == "\n\nB"

    def test_blank_blocks_keep_markers(self):
        """Test that blank blocks still contribute their row and paragraph markers."""
        from img2text.utils.layout import reconstruct_text

        blocks = [make_block(" ", 0, 0), make_block(" ", 100, 5), make_block("B", 0, 100)]

        assert reconstruct_text(blocks) == "    \n\nB"

    def test_threshold_boundary_with_larger_gap(self):
        """Test boundary handling at a configured threshold."""
        from img2text.utils.layout import reconstruct_text

        inside = [make_block("A", 0, 0), make_block("B", 100, 39)]
        boundary = [make_block("A", 0, 0), make_block("B", 100, 40)]

        assert reconstruct_text(inside, row_threshold=40) == "A    B"
        assert reconstruct_text(boundary, row_threshold=40) == "A\n\nB"

    def test_custom_parameters(self):
        """Test configurable threshold and markers."""
        from img2text.utils.layout import reconstruct_text

        blocks = [make_block("A", 0, 0), make_block("B", 100, 30), make_block("C", 0, 100)]

        result = reconstruct_text(
            blocks,
            row_threshold=40,
            column_gap="\t",
            paragraph_separator="\n"
        )

        assert result == "A\tB\nC"

    def test_deterministic(self):
        """Test that identical input gives identical output."""
        from img2text.utils.layout import reconstruct_text

        blocks = [
            make_block("x", 80, 5), make_block("y", 5, 0),
            make_block("z", 40, 60), make_block("w", 0, 61),
        ]

        assert reconstruct_text(blocks) == reconstruct_text(list(blocks))
        assert reconstruct_text(blocks) == "y    x\n\nw    z"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
