"""
Utility modules for the image-to-text pipeline.
"""

from .io import load_image, decode_image, encode_image, validate_upload, save_json, ensure_dir
from .images import (
    preprocess_image, preprocess_image_bytes, preprocess_image_file, binarize_image, compute_scale_factor
)
from .layout import BoundingBox, TextBlock, sort_blocks, reconstruct_text
from .ocr_text import TesseractEngine, OCRResult, ProgressEvent, EngineState
from .converter import ImageToTextConverter, ConversionResult

__all__ = [
    # IO
    "load_image", "decode_image", "encode_image", "validate_upload", "save_json", "ensure_dir",
    # Images
    "preprocess_image", "preprocess_image_bytes", "preprocess_image_file", "binarize_image",
    "compute_scale_factor",
    # Layout
    "BoundingBox", "TextBlock", "sort_blocks", "reconstruct_text",
    # OCR
    "TesseractEngine", "OCRResult", "ProgressEvent", "EngineState",
    # Conversion
    "ImageToTextConverter", "ConversionResult",
]
