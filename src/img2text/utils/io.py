"""
I/O utilities for the image-to-text pipeline.

Handles:
- Image loading, decoding and encoding (RGB/RGBA channel order)
- Upload validation (type and size limits)
- Input type detection
- JSON and text serialization
- Directory management
"""

import json
import logging
import mimetypes
from pathlib import Path
from typing import List, Union, Optional, Any
from dataclasses import asdict

import numpy as np

logger = logging.getLogger(__name__)


IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.webp', '.gif')

UPLOAD_NOT_AN_IMAGE = "Please upload an image file"
UPLOAD_TOO_LARGE = "File size should be less than {max_mb:g}MB"


# ============================================================================
# Exceptions
# ============================================================================

class UploadValidationError(ValueError):
    """Raised when an uploaded file is rejected before processing."""


class ImageDecodingError(ValueError):
    """Raised when image bytes cannot be decoded."""


class ImageEncodingError(RuntimeError):
    """Raised when an image cannot be encoded back to a file format."""


# ============================================================================
# Upload Validation
# ============================================================================

def guess_mime_type(filename: str) -> Optional[str]:
    """Guess a MIME type from a file name."""
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None and Path(filename).suffix.lower() == ".webp":
        return "image/webp"
    return mime_type


def validate_upload(
    filename: str,
    size: int,
    mime_type: Optional[str] = None,
    max_file_size_mb: float = 5.0,
    accepted_mime_prefix: str = "image/"
) -> str:
    """
    Validate an uploaded file before any processing begins.

    Args:
        filename: Name of the uploaded file
        size: Size in bytes
        mime_type: MIME type reported by the capture surface (guessed from
            the file name when missing)
        max_file_size_mb: Maximum accepted size in megabytes
        accepted_mime_prefix: Required MIME type prefix

    Returns:
        The effective MIME type

    Raises:
        UploadValidationError: With a user-facing message
    """
    mime_type = mime_type or guess_mime_type(filename)

    if not mime_type or not mime_type.startswith(accepted_mime_prefix):
        logger.info(f"Rejected upload {filename!r}: type {mime_type!r}")
        raise UploadValidationError(UPLOAD_NOT_AN_IMAGE)

    if size > max_file_size_mb * 1024 * 1024:
        logger.info(f"Rejected upload {filename!r}: {size} bytes")
        raise UploadValidationError(UPLOAD_TOO_LARGE.format(max_mb=max_file_size_mb))

    return mime_type


# ============================================================================
# Image Decoding / Encoding
# ============================================================================

def _bgr_to_rgb(img: np.ndarray) -> np.ndarray:
    import cv2

    if img.ndim == 3 and img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    return img


def _rgb_to_bgr(img: np.ndarray) -> np.ndarray:
    import cv2

    if img.ndim == 3 and img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA)
    return img


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode image file bytes into a pixel array.

    Alpha and bit depth are kept as stored in the file.

    Args:
        data: Encoded image (PNG, JPEG, ...)

    Returns:
        Numpy array in RGB / RGBA order, or 2D for grayscale files

    Raises:
        ImageDecodingError: If the bytes are not a decodable image
    """
    import cv2

    buffer = np.frombuffer(data, dtype=np.uint8)
    if buffer.size == 0:
        raise ImageDecodingError("Empty image data")

    img = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ImageDecodingError("Could not decode image data")

    return _bgr_to_rgb(img)


def encode_image(image: np.ndarray, ext: str = ".png") -> bytes:
    """
    Encode a pixel array (RGB / RGBA / grayscale) to file bytes.

    Raises:
        ImageEncodingError: If OpenCV cannot encode the image
    """
    import cv2

    try:
        ok, buffer = cv2.imencode(ext, _rgb_to_bgr(image))
    except cv2.error as e:
        raise ImageEncodingError(f"Failed to encode image as {ext}: {e}") from e

    if not ok:
        raise ImageEncodingError(f"Failed to encode image as {ext}")

    return buffer.tobytes()


def load_image(image_path: Union[str, Path]) -> np.ndarray:
    """
    Load an image from file.

    Args:
        image_path: Path to the image file

    Returns:
        Numpy array representing the image (RGB / RGBA if color)

    Raises:
        FileNotFoundError: If image file doesn't exist
        ImageDecodingError: If image cannot be decoded
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    img = decode_image(image_path.read_bytes())

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape}")
    return img


def save_image(image: np.ndarray, output_path: Union[str, Path]) -> Path:
    """Save an RGB / RGBA / grayscale image, format chosen by the suffix."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    output_path.write_bytes(encode_image(image, output_path.suffix or ".png"))

    logger.debug(f"Saved image: {output_path}")
    return output_path


# ============================================================================
# Input Detection
# ============================================================================

def list_images_in_folder(
    folder_path: Union[str, Path],
    extensions: tuple = IMAGE_EXTENSIONS,
    sort: bool = True
) -> List[Path]:
    """
    List all image files in a folder.

    Args:
        folder_path: Path to the folder containing images
        extensions: Tuple of valid image extensions
        sort: If True, sort files alphabetically

    Returns:
        List of image file paths
    """
    folder_path = Path(folder_path)
    if not folder_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {folder_path}")

    image_files = [
        f for f in folder_path.iterdir()
        if f.is_file() and f.suffix.lower() in extensions
    ]

    if sort:
        image_files = sorted(image_files)

    logger.info(f"Found {len(image_files)} images in {folder_path}")
    return image_files


def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input.

    Returns:
        'image', 'image_folder' or 'unknown'
    """
    input_path = Path(input_path)

    if input_path.is_dir():
        if any(f.suffix.lower() in IMAGE_EXTENSIONS for f in input_path.iterdir()):
            return "image_folder"
        return "unknown"

    if input_path.suffix.lower() in IMAGE_EXTENSIONS:
        return "image"

    return "unknown"


# ============================================================================
# JSON / Text Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types, dataclasses and paths."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def to_json(data: Any, indent: int = 2) -> str:
    """Serialize data to a JSON string with the pipeline encoder."""
    return json.dumps(data, indent=indent, ensure_ascii=False, cls=EnhancedJSONEncoder)


def save_text(text: str, output_path: Union[str, Path]) -> Path:
    """Save plain text as UTF-8."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding='utf-8')

    logger.debug(f"Saved text: {output_path}")
    return output_path


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
