"""
Conversion flow for the image-to-text pipeline.

Provides:
- Conversion result envelope
- Engine start-up with user-facing status messages
- Per-upload flow: validation, background preprocessing, recognition,
  layout reconstruction
- Guaranteed clearing of the busy state on success and failure
"""

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Optional, Dict, Any

from ..config import ImageConfig, LayoutConfig, UploadConfig, JSON_SCHEMA_VERSION
from .images import preprocess_image_file
from .io import decode_image, validate_upload
from .layout import TextBlock, reconstruct_text, NO_TEXT_FOUND
from .ocr_text import EngineState, OCREngineError, ProgressCallback

logger = logging.getLogger(__name__)


STATUS_LOADING = "Loading OCR engine..."
STATUS_READY = "Ready!"
STATUS_INIT_FAILED = "Failed to initialize OCR. Please refresh the page."
STATUS_NOT_READY = "OCR engine is initializing. Please try again in a moment."
STATUS_PROCESSING = "Processing your image..."

FAILURE_MESSAGE = "Sorry! Something went wrong. Please try uploading the image again."


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ConversionResult:
    """Outcome of converting one uploaded image."""
    text: str
    status: str  # success, empty, failed
    source_name: str
    blocks: List[TextBlock] = field(default_factory=list)
    confidence: float = 0.0
    scale_factor: float = 1.0
    was_preprocessed: bool = False
    processing_time_seconds: float = 0.0
    error: Optional[str] = None
    task_id: str = ""
    created_at: str = ""
    # Image handed to the engine; kept for previews, never serialized
    processed_image: Optional[bytes] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.task_id:
            self.task_id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    @property
    def is_error(self) -> bool:
        return self.status == "failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": JSON_SCHEMA_VERSION,
            "task_id": self.task_id,
            "source_file": self.source_name,
            "created_at": self.created_at,
            "status": self.status,
            "text": self.text,
            "confidence": self.confidence,
            "blocks": [b.to_dict() for b in self.blocks],
            "preprocessing": {
                "enabled": self.was_preprocessed,
                "scale_factor": self.scale_factor
            },
            "processing_time_seconds": round(self.processing_time_seconds, 2),
            "error": self.error
        }


# ============================================================================
# Converter
# ============================================================================

class ImageToTextConverter:
    """
    Runs uploads through preprocessing, OCR and layout reconstruction.

    ``status_message`` and ``is_busy`` mirror what a UI shows: the engine
    start-up state, and whether a conversion is running. A new conversion
    replaces ``result`` as a whole.
    """

    def __init__(
        self,
        engine,
        preprocessing_enabled: bool = True,
        image_config=None,
        layout_config=None,
        upload_config=None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        self.engine = engine
        self.preprocessing_enabled = preprocessing_enabled
        self.image_config = image_config or ImageConfig()
        self.layout_config = layout_config or LayoutConfig()
        self.upload_config = upload_config or UploadConfig()

        self.status_message = ""
        self.result: Optional[ConversionResult] = None
        self._busy = threading.Event()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="img2text-worker"
        )

    @property
    def is_busy(self) -> bool:
        return self._busy.is_set()

    @property
    def _preprocess_options(self) -> Dict[str, Any]:
        options = asdict(self.image_config)
        options.pop("enabled", None)
        return options

    # ------------------------------------------------------------------
    # Engine start-up
    # ------------------------------------------------------------------

    def start(self, progress_callback: Optional[ProgressCallback] = None) -> bool:
        """
        Initialize the engine, updating ``status_message``.

        Returns:
            True when the engine is ready. A failure leaves the
            init-failed message in place; there is no retry.
        """
        self.status_message = STATUS_LOADING
        try:
            self.engine.initialize(progress_callback=progress_callback)
        except OCREngineError as e:
            logger.error(f"Error initializing OCR engine: {e}")
            self.status_message = STATUS_INIT_FAILED
            return False

        self.status_message = STATUS_READY
        return True

    def start_in_background(self, progress_callback: Optional[ProgressCallback] = None) -> Future:
        """Run :meth:`start` on the worker thread."""
        return self._executor.submit(self.start, progress_callback)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert(
        self,
        data: bytes,
        filename: str,
        mime_type: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Optional[ConversionResult]:
        """
        Convert one uploaded image to text.

        Args:
            data: Encoded image file
            filename: Original file name
            mime_type: MIME type reported by the upload surface
            progress_callback: Receives engine ProgressEvents

        Returns:
            ConversionResult, or None when the engine is not ready (see
            ``status_message``)

        Raises:
            UploadValidationError: If the file is rejected before processing
        """
        validate_upload(
            filename,
            len(data),
            mime_type=mime_type,
            max_file_size_mb=self.upload_config.max_file_size_mb,
            accepted_mime_prefix=self.upload_config.accepted_mime_prefix
        )

        if not self.engine.is_ready:
            if self.engine.state is EngineState.FAILED:
                self.status_message = STATUS_INIT_FAILED
            else:
                self.status_message = STATUS_NOT_READY
            logger.warning(f"Conversion of {filename!r} skipped: engine is {self.engine.state.value}")
            return None

        self._busy.set()
        self.result = None
        self.status_message = STATUS_PROCESSING
        start_time = time.time()

        try:
            self.result = self._run(data, filename, progress_callback)
        except Exception as e:
            logger.exception(f"Error processing image {filename!r}: {e}")
            self.result = ConversionResult(
                text=FAILURE_MESSAGE,
                status="failed",
                source_name=filename,
                was_preprocessed=self.preprocessing_enabled,
                error=str(e)
            )
        finally:
            self._busy.clear()
            self.status_message = ""

        self.result.processing_time_seconds = time.time() - start_time
        logger.info(
            f"Converted {filename!r}: {self.result.status} "
            f"in {self.result.processing_time_seconds:.2f}s"
        )
        return self.result

    def _run(
        self,
        data: bytes,
        filename: str,
        progress_callback: Optional[ProgressCallback]
    ) -> ConversionResult:
        processed, scale = data, 1.0
        if self.preprocessing_enabled:
            future = self._executor.submit(preprocess_image_file, data, **self._preprocess_options)
            processed, scale = future.result()

        image = decode_image(processed)
        was_preprocessed = processed is not data

        ocr_result = self.engine.recognize(image, progress_callback=progress_callback)

        text = reconstruct_text(
            ocr_result.blocks,
            row_threshold=self.layout_config.row_threshold,
            column_gap=self.layout_config.column_gap,
            paragraph_separator=self.layout_config.paragraph_separator
        )

        return ConversionResult(
            text=text,
            status="empty" if text == NO_TEXT_FOUND else "success",
            source_name=filename,
            blocks=list(ocr_result.blocks),
            confidence=ocr_result.confidence,
            scale_factor=scale,
            was_preprocessed=was_preprocessed,
            processed_image=processed
        )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self, terminate_engine: bool = True) -> None:
        """Wait for outstanding work, then release the engine and worker."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if terminate_engine:
            self.engine.terminate()

    def __enter__(self) -> 'ImageToTextConverter':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
