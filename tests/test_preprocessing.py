"""
Tests for image preprocessing module.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestScaleFactor:
    """Test the adaptive scaling policy."""

    @pytest.mark.parametrize("width,height,expected", [
        (400, 300, 2.0),
        (1000, 1000, 2.0),
        (1001, 200, 1.5),
        (800, 2000, 1.5),
        (2001, 10, 1.0),
        (3000, 4000, 1.0),
    ])
    def test_compute_scale_factor(self, width, height, expected):
        """Test the factor for each size band, including the boundaries."""
        from img2text.utils.images import compute_scale_factor

        assert compute_scale_factor(width, height) == expected

    def test_small_image_doubles(self):
        """Test that images up to 1000px come out at twice their size."""
        from img2text.utils.images import preprocess_image

        img = np.full((300, 400, 4), 255, dtype=np.uint8)

        result = preprocess_image(img)

        assert result.image.shape == (600, 800, 4)
        assert result.scale_factor == 2.0
        assert result.original_shape == (300, 400)

    def test_medium_image_scales_one_and_a_half(self):
        """Test that images between 1000px and 2000px are scaled by 1.5."""
        from img2text.utils.images import preprocess_image

        img = np.full((800, 1200, 3), 255, dtype=np.uint8)

        result = preprocess_image(img)

        assert result.image.shape == (1200, 1800, 3)
        assert result.scale_factor == 1.5

    def test_large_image_keeps_size(self):
        """Test that images above 2000px are not resized."""
        from img2text.utils.images import preprocess_image

        img = np.full((10, 2500, 4), 255, dtype=np.uint8)

        result = preprocess_image(img)

        assert result.image.shape == (10, 2500, 4)
        assert result.scale_factor == 1.0
        assert not any(t.startswith("scale") for t in result.transformations)


class TestLuminanceAndContrast:
    """Test the per-pixel color math."""

    def test_luminance_weights(self):
        """Test that luminance uses the 0.299/0.587/0.114 weights."""
        from img2text.utils.images import to_luminance

        img = np.array([[[100, 150, 200]]], dtype=np.uint8)

        luminance = to_luminance(img)

        assert luminance.shape == (1, 1)
        assert luminance[0, 0] == pytest.approx(0.299 * 100 + 0.587 * 150 + 0.114 * 200)

    def test_luminance_ignores_alpha(self):
        """Test that alpha does not contribute to luminance."""
        from img2text.utils.images import to_luminance

        opaque = np.array([[[10, 20, 30, 255]]], dtype=np.uint8)
        transparent = np.array([[[10, 20, 30, 0]]], dtype=np.uint8)

        assert to_luminance(opaque)[0, 0] == to_luminance(transparent)[0, 0]

    def test_luminance_grayscale(self):
        """Test that grayscale values are used directly."""
        from img2text.utils.images import to_luminance

        img = np.array([[0, 77, 255]], dtype=np.uint8)

        np.testing.assert_array_equal(to_luminance(img), [[0.0, 77.0, 255.0]])

    def test_luminance_unexpected_shape(self):
        """Test that unsupported channel counts are rejected."""
        from img2text.utils.images import to_luminance

        with pytest.raises(ValueError):
            to_luminance(np.zeros((4, 4, 2), dtype=np.uint8))

    def test_enhance_contrast(self):
        """Test attenuation below 128 and capped boost above."""
        from img2text.utils.images import enhance_contrast

        luminance = np.array([100.0, 127.9, 128.0, 200.0, 250.0])

        enhanced = enhance_contrast(luminance)

        np.testing.assert_allclose(enhanced, [80.0, 127.9 * 0.8, 153.6, 240.0, 255.0])

    def test_binarize_threshold_is_strict(self):
        """Test that exactly 128 maps to black."""
        from img2text.utils.images import binarize

        result = binarize(np.array([0.0, 128.0, 128.5, 255.0]))

        np.testing.assert_array_equal(result, [0, 0, 255, 255])
        assert result.dtype == np.uint8


class TestBinarization:
    """Test the black/white output of the pipeline."""

    @pytest.fixture
    def colorful_image(self):
        """Create a small RGBA image with varied colors and alpha."""
        rng = np.random.default_rng(42)
        img = rng.integers(0, 256, size=(40, 60, 4), dtype=np.uint8)
        return img

    def test_output_is_black_and_white(self, colorful_image):
        """Test that every channel is 0 or 255 and R == G == B."""
        from img2text.utils.images import preprocess_image

        result = preprocess_image(colorful_image)
        rgb = result.image[:, :, :3]

        assert set(np.unique(rgb)) <= {0, 255}
        np.testing.assert_array_equal(rgb[:, :, 0], rgb[:, :, 1])
        np.testing.assert_array_equal(rgb[:, :, 1], rgb[:, :, 2])

    def test_alpha_unchanged(self, colorful_image):
        """Test that the alpha channel passes through."""
        from img2text.utils.images import binarize_image

        result = binarize_image(colorful_image)

        np.testing.assert_array_equal(result[:, :, 3], colorful_image[:, :, 3])

    def test_uses_perceptual_luminance(self):
        """Test colors where a plain channel average would decide differently."""
        from img2text.utils.images import binarize_image

        # Magenta averages 170 but has luminance ~105; green averages 85
        # but has luminance ~150.
        img = np.array([[[255, 0, 255], [0, 255, 0]]], dtype=np.uint8)

        result = binarize_image(img)

        np.testing.assert_array_equal(result[0, 0], [0, 0, 0])
        np.testing.assert_array_equal(result[0, 1], [255, 255, 255])

    def test_binarization_is_idempotent(self, colorful_image):
        """Test that binarizing a binary image changes nothing."""
        from img2text.utils.images import binarize_image

        once = binarize_image(colorful_image)
        twice = binarize_image(once)

        np.testing.assert_array_equal(once, twice)

    def test_full_pipeline_is_not_idempotent(self):
        """Test that running the pipeline twice compounds the scaling."""
        from img2text.utils.images import preprocess_image

        img = np.full((50, 80, 3), 200, dtype=np.uint8)

        once = preprocess_image(img).image
        twice = preprocess_image(once).image

        assert once.shape == (100, 160, 3)
        assert twice.shape == (200, 320, 3)

    def test_input_not_mutated(self, colorful_image):
        """Test that the input array is left untouched."""
        from img2text.utils.images import preprocess_image

        before = colorful_image.copy()

        preprocess_image(colorful_image)

        np.testing.assert_array_equal(colorful_image, before)

    def test_grayscale_input(self):
        """Test that 2D images stay 2D."""
        from img2text.utils.images import preprocess_image

        img = np.tile(np.arange(0, 256, dtype=np.uint8), (10, 1))

        result = preprocess_image(img)

        assert result.image.ndim == 2
        assert result.image.shape == (20, 512)
        assert set(np.unique(result.image)) <= {0, 255}

    def test_sixteen_bit_input(self):
        """Test that 16-bit images are reduced to 8 bits first."""
        from img2text.utils.images import binarize_image

        img = np.array([[[65535, 65535, 65535], [0, 0, 0]]], dtype=np.uint16)

        result = binarize_image(img)

        assert result.dtype == np.uint8
        np.testing.assert_array_equal(result[0, 0], [255, 255, 255])
        np.testing.assert_array_equal(result[0, 1], [0, 0, 0])


class TestPreprocessBytes:
    """Test the file-level preprocessing contract."""

    @pytest.fixture
    def png_bytes(self):
        """Create a PNG with dark text-like bars on a light background."""
        from img2text.utils.io import encode_image

        img = np.full((60, 100, 3), 230, dtype=np.uint8)
        img[10:20, 10:90] = [20, 20, 20]
        img[30:40, 10:70] = [40, 10, 60]
        return encode_image(img, ".png")

    def test_returns_processed_png(self, png_bytes):
        """Test that the output decodes to a scaled binary image."""
        from img2text.utils.images import preprocess_image_bytes
        from img2text.utils.io import decode_image

        processed = preprocess_image_bytes(png_bytes)
        image = decode_image(processed)

        assert processed != png_bytes
        assert image.shape == (120, 200, 3)
        assert set(np.unique(image)) <= {0, 255}

    def test_falls_back_when_encoding_fails(self, png_bytes, monkeypatch):
        """Test that an encoding failure returns the original bytes."""
        from img2text.utils import images
        from img2text.utils.io import ImageEncodingError

        def failing_encode(image, ext=".png"):
            raise ImageEncodingError("no encoder")

        monkeypatch.setattr(images, "encode_image", failing_encode)

        result = images.preprocess_image_bytes(png_bytes)

        assert result is png_bytes

    def test_file_reports_scale_factor(self, png_bytes):
        """Test that the applied scale comes back with the processed file."""
        from img2text.utils.images import preprocess_image_file
        from img2text.utils.io import decode_image

        processed, scale = preprocess_image_file(png_bytes)

        assert scale == 2.0
        assert decode_image(processed).shape == (120, 200, 3)

    def test_file_fallback_reports_no_scaling(self):
        """Test that a failed preprocessing reports the original bytes at scale 1."""
        from img2text.utils.images import preprocess_image_file

        data = b"definitely not an image"

        processed, scale = preprocess_image_file(data)

        assert processed is data
        assert scale == 1.0

    def test_falls_back_on_undecodable_data(self):
        """Test that garbage input is returned as-is instead of raising."""
        from img2text.utils.images import preprocess_image_bytes

        data = b"definitely not an image"

        assert preprocess_image_bytes(data) is data


class TestComparisonImage:
    """Test debug visualization."""

    def test_create_comparison_image(self):
        """Test side-by-side rendering of different sizes and channel counts."""
        from img2text.utils.images import create_comparison_image

        original = np.full((100, 150, 4), 128, dtype=np.uint8)
        processed = np.full((200, 300), 255, dtype=np.uint8)

        result = create_comparison_image(original, processed)

        assert result.ndim == 3
        assert result.shape[2] == 3
        # Both panels share the larger height plus the title bar
        assert result.shape[0] == 200 + 30
        assert result.shape[1] > processed.shape[1]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
