"""
Text OCR module for the image-to-text pipeline.

Provides:
- Tesseract engine adapter with lazy, one-time initialization
- Serialized recognition (one job at a time per engine)
- Progress events
- Grouping of word-level output into text blocks
- Explicit teardown
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any, Callable
import numpy as np

from .layout import BoundingBox, TextBlock

logger = logging.getLogger(__name__)


# ============================================================================
# Exceptions
# ============================================================================

class OCREngineError(RuntimeError):
    """Base class for OCR engine failures."""


class EngineInitializationError(OCREngineError):
    """The engine could not be loaded. Terminal for the engine instance."""


class EngineNotReadyError(OCREngineError):
    """The engine was used after teardown."""


class RecognitionError(OCREngineError):
    """The engine failed while recognizing an image."""


# ============================================================================
# Data Classes
# ============================================================================

class EngineState(Enum):
    """Lifecycle of an OCR engine."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    TERMINATED = "terminated"


@dataclass
class ProgressEvent:
    """Progress notification emitted by the engine."""
    status: str
    progress: float = 0.0


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class OCRResult:
    """Complete OCR result for an image."""
    text: str
    blocks: List[TextBlock] = field(default_factory=list)
    confidence: float = 0.0
    engine_used: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "blocks": [b.to_dict() for b in self.blocks],
            "confidence": self.confidence,
            "engine": self.engine_used,
            "metadata": self.metadata
        }


def _emit(callback: Optional[ProgressCallback], status: str, progress: float):
    if callback is None:
        return
    try:
        callback(ProgressEvent(status=status, progress=progress))
    except Exception as e:
        # Listener errors are logged, never raised
        logger.warning(f"Progress callback failed: {e}")


# ============================================================================
# Word Grouping
# ============================================================================

# Keys of pytesseract's image_to_data output identifying each layout level
BLOCK_LEVELS = {
    "block": ("page_num", "block_num"),
    "paragraph": ("page_num", "block_num", "par_num"),
    "line": ("page_num", "block_num", "par_num", "line_num"),
}
_LINE_KEYS = BLOCK_LEVELS["line"]


def group_words(data: Dict[str, List[Any]], level: str = "block") -> List[TextBlock]:
    """
    Group Tesseract word output into text blocks.

    Words of one line are joined with single spaces, lines of one block
    with newlines. The block's box is the union of its word boxes and its
    confidence the mean word confidence (0..1).

    Args:
        data: ``pytesseract.image_to_data`` output as a dict of columns
        level: 'block', 'paragraph' or 'line'

    Returns:
        Blocks in engine order
    """
    if level not in BLOCK_LEVELS:
        raise ValueError(f"Unknown block level: {level}")
    group_keys = BLOCK_LEVELS[level]

    groups: Dict[tuple, Dict[tuple, list]] = {}

    for i in range(len(data.get("text", []))):
        text = str(data["text"][i]).strip()
        conf = float(data["conf"][i])

        if not text or conf < 0:  # -1 marks non-word rows
            continue

        bbox = BoundingBox.from_xywh(
            int(data["left"][i]),
            int(data["top"][i]),
            int(data["width"][i]),
            int(data["height"][i])
        )
        group_key = tuple(data[k][i] for k in group_keys)
        line_key = tuple(data[k][i] for k in _LINE_KEYS)

        groups.setdefault(group_key, {}).setdefault(line_key, []).append((text, bbox, conf))

    blocks = []
    for lines in groups.values():
        words = [word for line in lines.values() for word in line]
        text = "\n".join(" ".join(w[0] for w in line) for line in lines.values())
        blocks.append(TextBlock(
            text=text,
            bbox=BoundingBox.union([w[1] for w in words]),
            confidence=float(np.mean([w[2] for w in words])) / 100.0
        ))

    return blocks


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractEngine:
    """
    OCR using Tesseract.

    The engine is a shared, stateful resource. ``initialize`` runs once no
    matter how many threads call it; ``recognize`` calls are serialized;
    ``terminate`` waits for an in-flight recognition before releasing.
    """

    name = "tesseract"

    def __init__(
        self,
        language: str = "eng",
        psm: int = 3,
        oem: int = 3,
        preserve_interword_spaces: bool = True,
        block_level: str = "block",
        tesseract_cmd: Optional[str] = None
    ):
        if block_level not in BLOCK_LEVELS:
            raise ValueError(f"Unknown block level: {block_level}")

        self.language = language
        self.psm = psm
        self.oem = oem
        self.preserve_interword_spaces = preserve_interword_spaces
        self.block_level = block_level
        self.tesseract_cmd = tesseract_cmd
        self.version: Optional[str] = None

        self.pytesseract = None
        self._state = EngineState.UNINITIALIZED
        self._init_error: Optional[EngineInitializationError] = None
        self._init_lock = threading.Lock()
        self._busy_lock = threading.Lock()

    @classmethod
    def from_config(cls, ocr_config) -> 'TesseractEngine':
        """Create an engine from an ``OCRConfig``."""
        if ocr_config.engine != "tesseract":
            raise ValueError(f"Unknown OCR engine: {ocr_config.engine}")
        return cls(
            language=ocr_config.tesseract_lang,
            psm=ocr_config.psm,
            oem=ocr_config.oem,
            preserve_interword_spaces=ocr_config.preserve_interword_spaces,
            block_level=ocr_config.block_level,
            tesseract_cmd=ocr_config.tesseract_cmd
        )

    @property
    def config_string(self) -> str:
        """Command line options passed through to Tesseract."""
        return (
            f"--oem {self.oem} --psm {self.psm} "
            f"-c preserve_interword_spaces={int(self.preserve_interword_spaces)}"
        )

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    @property
    def is_busy(self) -> bool:
        return self._busy_lock.locked()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, progress_callback: Optional[ProgressCallback] = None) -> None:
        """
        Load Tesseract and check the requested language data.

        Safe to call repeatedly and from several threads; only the first
        call does the work. A failure is remembered and re-raised on every
        later call.

        Raises:
            EngineInitializationError: If Tesseract is missing or unusable
            EngineNotReadyError: If the engine was terminated
        """
        if self._state is EngineState.READY:
            return

        with self._init_lock:
            if self._state is EngineState.READY:
                return
            if self._state is EngineState.FAILED:
                raise self._init_error
            if self._state is EngineState.TERMINATED:
                raise EngineNotReadyError("OCR engine has been terminated")

            self._state = EngineState.INITIALIZING
            _emit(progress_callback, "loading tesseract core", 0.0)

            try:
                self._load(progress_callback)
            except Exception as e:
                self._state = EngineState.FAILED
                self._init_error = EngineInitializationError(
                    f"Tesseract not available: {e}\n"
                    "Install with: pip install pytesseract\n"
                    "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
                )
                logger.error(f"Failed to initialize {self.name}: {e}")
                raise self._init_error from e

            self._state = EngineState.READY
            _emit(progress_callback, "initialized api", 1.0)
            logger.info(f"Initialized OCR engine: {self.name} {self.version or ''} ({self.language})")

    def _load(self, progress_callback: Optional[ProgressCallback] = None) -> None:
        import pytesseract

        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        self.version = str(pytesseract.get_tesseract_version())
        _emit(progress_callback, "loading language traineddata", 0.5)

        available = set(pytesseract.get_languages(config=""))
        missing = [lang for lang in self.language.split("+") if lang not in available]
        if missing:
            raise RuntimeError(f"Language data not installed: {', '.join(missing)}")

        self.pytesseract = pytesseract

    def terminate(self) -> None:
        """
        Release the engine.

        Waits for a running recognition to finish. Safe before
        initialization, after a failed initialization and when called twice.
        """
        with self._busy_lock:
            with self._init_lock:
                if self._state is EngineState.TERMINATED:
                    return
                self._state = EngineState.TERMINATED
                self.pytesseract = None

        logger.info(f"Terminated OCR engine: {self.name}")

    def __enter__(self) -> 'TesseractEngine':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.terminate()

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    def _image_to_data(self, image: np.ndarray) -> Dict[str, List[Any]]:
        return self.pytesseract.image_to_data(
            image,
            lang=self.language,
            config=self.config_string,
            output_type=self.pytesseract.Output.DICT
        )

    def recognize(
        self,
        image: np.ndarray,
        progress_callback: Optional[ProgressCallback] = None
    ) -> OCRResult:
        """
        Recognize text in an image.

        Initializes the engine on first use. Concurrent calls wait for each
        other.

        Args:
            image: Image array (grayscale, RGB or RGBA)
            progress_callback: Receives ProgressEvent notifications

        Returns:
            OCRResult with the engine text and its blocks

        Raises:
            EngineInitializationError: If the engine cannot be loaded
            EngineNotReadyError: If the engine was terminated
            RecognitionError: If Tesseract fails on this image
        """
        self.initialize()

        with self._busy_lock:
            if self._state is not EngineState.READY:
                raise EngineNotReadyError("OCR engine has been terminated")

            start_time = time.time()
            _emit(progress_callback, "recognizing text", 0.0)

            try:
                data = self._image_to_data(image)
            except Exception as e:
                logger.error(f"Tesseract error: {e}")
                raise RecognitionError(f"Tesseract failed: {e}") from e

            blocks = group_words(data, level=self.block_level)
            _emit(progress_callback, "recognizing text", 1.0)

        confidences = [b.confidence for b in blocks if b.confidence is not None]
        elapsed = time.time() - start_time

        logger.debug(f"Recognized {len(blocks)} block(s) in {elapsed:.2f}s")

        return OCRResult(
            text="\n\n".join(b.text for b in blocks),
            blocks=blocks,
            confidence=float(np.mean(confidences)) if confidences else 0.0,
            engine_used=self.name,
            metadata={
                "language": self.language,
                "psm": self.psm,
                "oem": self.oem,
                "block_level": self.block_level,
                "processing_time_seconds": round(elapsed, 3)
            }
        )
