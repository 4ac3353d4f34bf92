"""
Image preprocessing utilities for the image-to-text pipeline.

Provides:
- Adaptive scaling (upscale small images for small glyphs)
- Perceptual luminance conversion
- Contrast enhancement
- Binarization (strict black/white output)
- Full preprocessing pipeline, on arrays and on encoded files
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple, List
import numpy as np

from .io import decode_image, encode_image

logger = logging.getLogger(__name__)


# ITU-R BT.601 luma weights; output must be reproducible, do not round.
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class PreprocessingResult:
    """Result of image preprocessing."""
    image: np.ndarray
    original_shape: Tuple[int, int]
    scale_factor: float = 1.0
    transformations: List[str] = field(default_factory=list)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.image.shape[:2]


# ============================================================================
# Core Preprocessing Functions
# ============================================================================

def _as_uint8(image: np.ndarray) -> np.ndarray:
    """Bring 16-bit and float images down to 8 bits per channel."""
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return (image // 257).astype(np.uint8)
    if np.issubdtype(image.dtype, np.floating):
        return np.clip(np.rint(image * 255.0), 0, 255).astype(np.uint8)
    return np.clip(image, 0, 255).astype(np.uint8)


def compute_scale_factor(
    width: int,
    height: int,
    large_image_threshold: int = 2000,
    medium_image_threshold: int = 1000,
    medium_scale: float = 1.5,
    small_scale: float = 2.0
) -> float:
    """
    Pick the resize factor for an image.

    Large images are never downscaled; small ones are enlarged so that
    small glyphs become legible to the OCR engine.

    Args:
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        1.0 above the large threshold, ``medium_scale`` above the medium
        threshold, ``small_scale`` otherwise
    """
    max_dimension = max(width, height)

    if max_dimension > large_image_threshold:
        return 1.0
    if max_dimension > medium_image_threshold:
        return medium_scale
    return small_scale


def scale_image(image: np.ndarray, scale: float) -> np.ndarray:
    """
    Resize an image by a uniform factor.

    Output dimensions are truncated to whole pixels. A factor of 1.0
    returns a copy.
    """
    import cv2

    if scale == 1.0:
        return image.copy()

    h, w = image.shape[:2]
    new_width = max(1, int(w * scale))
    new_height = max(1, int(h * scale))

    interpolation = cv2.INTER_CUBIC if scale > 1 else cv2.INTER_AREA
    resized = cv2.resize(image, (new_width, new_height), interpolation=interpolation)

    logger.debug(f"Resized image: {image.shape[:2]} -> {resized.shape[:2]} (scale={scale:.2f})")
    return resized


def to_luminance(image: np.ndarray) -> np.ndarray:
    """
    Compute per-pixel perceptual luminance.

    Args:
        image: Grayscale, RGB or RGBA image

    Returns:
        2D float64 array, ``0.299*R + 0.587*G + 0.114*B``
    """
    if image.ndim == 2:
        return image.astype(np.float64)

    if image.ndim == 3:
        channels = image.shape[2]
        if channels == 1:
            return image[:, :, 0].astype(np.float64)
        if channels in (3, 4):
            rgb = image[:, :, :3].astype(np.float64)
            r_weight, g_weight, b_weight = LUMA_WEIGHTS
            return r_weight * rgb[:, :, 0] + g_weight * rgb[:, :, 1] + b_weight * rgb[:, :, 2]

    raise ValueError(f"Unexpected image shape: {image.shape}")


def enhance_contrast(
    luminance: np.ndarray,
    threshold: int = 128,
    dark_attenuation: float = 0.8,
    light_boost: float = 1.2
) -> np.ndarray:
    """
    Push dark values darker and light values lighter.

    Values below ``threshold`` are multiplied by ``dark_attenuation``; the
    rest by ``light_boost``, capped at 255.
    """
    return np.where(
        luminance < threshold,
        luminance * dark_attenuation,
        np.minimum(255.0, luminance * light_boost)
    )


def binarize(luminance: np.ndarray, threshold: int = 128) -> np.ndarray:
    """Map luminance strictly above ``threshold`` to 255, everything else to 0."""
    return np.where(luminance > threshold, 255, 0).astype(np.uint8)


def binarize_image(
    image: np.ndarray,
    threshold: int = 128,
    dark_attenuation: float = 0.8,
    light_boost: float = 1.2
) -> np.ndarray:
    """
    Convert an image to strict black and white without resizing.

    The same value is written to R, G and B; an alpha channel is copied
    unchanged. Re-running this on its own output is a no-op.

    Args:
        image: Grayscale, RGB or RGBA image

    Returns:
        New array with the input's shape
    """
    image = _as_uint8(image)

    luminance = to_luminance(image)
    enhanced = enhance_contrast(
        luminance,
        threshold=threshold,
        dark_attenuation=dark_attenuation,
        light_boost=light_boost
    )
    values = binarize(enhanced, threshold=threshold)

    if image.ndim == 2:
        return values
    if image.shape[2] == 1:
        return values[:, :, np.newaxis]

    result = image.copy()
    result[:, :, :3] = values[:, :, np.newaxis]
    return result


# ============================================================================
# Main Preprocessing Pipeline
# ============================================================================

def preprocess_image(
    image: np.ndarray,
    large_image_threshold: int = 2000,
    medium_image_threshold: int = 1000,
    medium_scale: float = 1.5,
    small_scale: float = 2.0,
    luminance_threshold: int = 128,
    dark_attenuation: float = 0.8,
    light_boost: float = 1.2
) -> PreprocessingResult:
    """
    Apply the full preprocessing pipeline to an image.

    Scales by the factor from :func:`compute_scale_factor`, then converts to
    luminance, enhances contrast and binarizes. The input array is not
    modified.

    Args:
        image: Input image (grayscale, RGB or RGBA)
        large_image_threshold: Longest side above which no scaling happens
        medium_image_threshold: Longest side above which ``medium_scale`` is used
        medium_scale: Scale for medium images
        small_scale: Scale for small images
        luminance_threshold: Contrast split point and binarization threshold
        dark_attenuation: Multiplier for dark pixels
        light_boost: Multiplier for light pixels

    Returns:
        PreprocessingResult with processed image and metadata
    """
    original_shape = image.shape[:2]
    h, w = original_shape
    transformations = []

    scale = compute_scale_factor(
        w, h,
        large_image_threshold=large_image_threshold,
        medium_image_threshold=medium_image_threshold,
        medium_scale=medium_scale,
        small_scale=small_scale
    )

    processed = scale_image(_as_uint8(image), scale)
    if scale != 1.0:
        transformations.append(f"scale_{scale:g}x")

    processed = binarize_image(
        processed,
        threshold=luminance_threshold,
        dark_attenuation=dark_attenuation,
        light_boost=light_boost
    )
    transformations.extend(["luminance", "enhance_contrast", "binarize"])

    logger.info(f"Preprocessing complete: {' -> '.join(transformations)}")

    return PreprocessingResult(
        image=processed,
        original_shape=original_shape,
        scale_factor=scale,
        transformations=transformations
    )


def preprocess_image_file(data: bytes, **options) -> Tuple[bytes, float]:
    """
    Preprocess an encoded image file.

    Falls back to the original bytes when decoding, processing or encoding
    fails; the OCR engine then simply sees the unprocessed image.

    Args:
        data: Encoded image file
        **options: Forwarded to :func:`preprocess_image`

    Returns:
        Tuple of (PNG bytes, scale factor applied), or ``(data, 1.0)``
        unchanged on failure
    """
    try:
        image = decode_image(data)
        result = preprocess_image(image, **options)
        return encode_image(result.image, ".png"), result.scale_factor
    except Exception as e:
        logger.warning(f"Preprocessing failed, using original image: {e}")
        return data, 1.0


def preprocess_image_bytes(data: bytes, **options) -> bytes:
    """Preprocess an encoded image file and return PNG bytes (or ``data``)."""
    processed, _ = preprocess_image_file(data, **options)
    return processed


# ============================================================================
# Debug Visualization
# ============================================================================

def create_comparison_image(
    original: np.ndarray,
    processed: np.ndarray,
    title_original: str = "Original",
    title_processed: str = "Processed"
) -> np.ndarray:
    """
    Create a side-by-side comparison of original and processed images.

    Args:
        original: Original image (grayscale, RGB or RGBA)
        processed: Processed image
        title_original: Title for original
        title_processed: Title for processed

    Returns:
        Combined RGB comparison image
    """
    import cv2

    def _to_rgb(img: np.ndarray) -> np.ndarray:
        img = _as_uint8(img)
        if img.ndim == 2:
            return cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
        if img.shape[2] == 1:
            return cv2.cvtColor(img[:, :, 0], cv2.COLOR_GRAY2RGB)
        if img.shape[2] == 4:
            return cv2.cvtColor(img, cv2.COLOR_RGBA2RGB)
        return img

    original = _to_rgb(original)
    processed = _to_rgb(processed)

    # Resize to same height
    h1, w1 = original.shape[:2]
    h2, w2 = processed.shape[:2]

    target_height = max(h1, h2)

    if h1 != target_height:
        scale = target_height / h1
        original = cv2.resize(original, (int(w1 * scale), target_height))

    if h2 != target_height:
        scale = target_height / h2
        processed = cv2.resize(processed, (int(w2 * scale), target_height))

    # Add titles
    title_height = 30
    title_bar1 = np.ones((title_height, original.shape[1], 3), dtype=np.uint8) * 255
    title_bar2 = np.ones((title_height, processed.shape[1], 3), dtype=np.uint8) * 255

    cv2.putText(title_bar1, title_original, (10, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1)
    cv2.putText(title_bar2, title_processed, (10, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1)

    original_with_title = np.vstack([title_bar1, original])
    processed_with_title = np.vstack([title_bar2, processed])

    separator = np.ones((original_with_title.shape[0], 5, 3), dtype=np.uint8) * 128

    return np.hstack([original_with_title, separator, processed_with_title])
