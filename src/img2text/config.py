"""
Configuration and constants for the image-to-text pipeline.

This module provides:
- Global configuration settings
- Preprocessing, layout and OCR parameters
- Upload limits
- Environment overrides
"""

import os
from dataclasses import dataclass, field
from typing import Optional, List
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("img2text")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class ImageConfig:
    """Image preprocessing configuration."""
    enabled: bool = True
    # Images whose longest side exceeds this are left at their size
    large_image_threshold: int = 2000
    # Images whose longest side exceeds this (up to the large threshold) get 1.5x
    medium_image_threshold: int = 1000
    medium_scale: float = 1.5
    small_scale: float = 2.0
    luminance_threshold: int = 128
    dark_attenuation: float = 0.8
    light_boost: float = 1.2


@dataclass
class LayoutConfig:
    """Layout reconstruction configuration."""
    row_threshold: int = 20
    column_gap: str = "    "
    paragraph_separator: str = "\n\n"


@dataclass
class OCRConfig:
    """OCR configuration."""
    engine: str = "tesseract"
    tesseract_lang: str = "eng"
    # --oem 3 = default engine, --psm 3 = fully automatic page segmentation
    oem: int = 3
    psm: int = 3
    preserve_interword_spaces: bool = True
    # Granularity of the blocks handed to the layout reconstructor
    block_level: str = "block"
    tesseract_cmd: Optional[str] = None


@dataclass
class UploadConfig:
    """Upload validation configuration."""
    max_file_size_mb: float = 5.0
    accepted_mime_prefix: str = "image/"
    accepted_extensions: List[str] = field(default_factory=lambda: [
        "png", "jpg", "jpeg", "bmp", "tiff", "tif", "webp", "gif"
    ])


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    image: ImageConfig = field(default_factory=ImageConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)

    # Global settings
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if _env_flag("IMG2TEXT_DEBUG"):
        config.debug_mode = True

    if os.environ.get("IMG2TEXT_OCR_LANG"):
        config.ocr.tesseract_lang = os.environ["IMG2TEXT_OCR_LANG"]

    psm = os.environ.get("IMG2TEXT_OCR_PSM")
    if psm:
        try:
            config.ocr.psm = int(psm)
        except ValueError:
            logger.warning(f"Ignoring invalid IMG2TEXT_OCR_PSM value: {psm!r}")

    preserve = _env_flag("IMG2TEXT_PRESERVE_SPACES")
    if preserve is not None:
        config.ocr.preserve_interword_spaces = preserve

    max_upload = os.environ.get("IMG2TEXT_MAX_UPLOAD_MB")
    if max_upload:
        try:
            config.upload.max_file_size_mb = float(max_upload)
        except ValueError:
            logger.warning(f"Ignoring invalid IMG2TEXT_MAX_UPLOAD_MB value: {max_upload!r}")

    # Custom location of the tesseract binary
    config.ocr.tesseract_cmd = os.environ.get("TESSERACT_CMD")

    return config


# ============================================================================
# JSON Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"
