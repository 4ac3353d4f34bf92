#!/usr/bin/env python
"""
Command-line interface for the Image to Text converter.

Usage:
    img2text --input <image_or_folder> [--output <output_dir>] [options]

Examples:
    # Print the text of one image
    img2text --input receipt.png

    # Convert a folder, writing .txt and .json files
    img2text --input ./scans --output ./output --format text json

    # Save the preprocessed images next to the results
    img2text --input receipt.png --output ./output --debug
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import argparse
import logging
import time
from typing import List, Optional

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("img2text")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    from img2text import __version__
    from img2text.utils.ocr_text import BLOCK_LEVELS

    parser = argparse.ArgumentParser(
        description="Image to Text - Convert images into editable text with OCR",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Print the text of an image:
    img2text --input receipt.png

  Convert a folder of images and export text and JSON:
    img2text --input ./scans --output ./output --format text json

  Sparse text (signs, labels) without preprocessing:
    img2text --input sign.jpg --psm 11 --no-preprocessing
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input image file or folder of images"
    )

    # Optional arguments
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Output directory (default: print text to stdout)"
    )

    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=["text"],
        choices=["text", "json", "all"],
        help="Output format(s) when --output is given (default: text)"
    )

    parser.add_argument(
        "--no-preprocessing",
        action="store_true",
        help="Send the image to the OCR engine unmodified"
    )

    parser.add_argument(
        "--lang",
        default=None,
        help="Tesseract language(s), e.g. 'eng' or 'eng+deu' (default: eng)"
    )

    parser.add_argument(
        "--psm",
        type=int,
        default=None,
        help="Tesseract page segmentation mode (default: 3)"
    )

    parser.add_argument(
        "--oem",
        type=int,
        default=None,
        help="Tesseract OCR engine mode (default: 3)"
    )

    parser.add_argument(
        "--no-preserve-spaces",
        action="store_true",
        help="Let Tesseract collapse runs of spaces between words"
    )

    parser.add_argument(
        "--block-level",
        choices=list(BLOCK_LEVELS),
        default=None,
        help="Granularity of OCR blocks used for layout reconstruction (default: block)"
    )

    parser.add_argument(
        "--row-threshold",
        type=int,
        default=None,
        help="Vertical distance in pixels that separates rows (default: 20)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Save preprocessed and side-by-side comparison images to the output directory"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def check_dependencies() -> bool:
    """Check if required dependencies are available."""
    missing = []

    try:
        import cv2
    except ImportError:
        missing.append("opencv-python")

    try:
        import numpy
    except ImportError:
        missing.append("numpy")

    try:
        import pytesseract
        # Test if tesseract is actually installed
        try:
            pytesseract.get_tesseract_version()
        except Exception:
            missing.append("tesseract-ocr (system package)")
    except ImportError:
        missing.append("pytesseract")

    if missing:
        logger.error("Missing required dependencies:")
        for dep in missing:
            logger.error(f"  - {dep}")
        logger.error("\nInstall with: pip install -e .")
        return False

    return True


def build_config(args):
    """Apply command-line overrides on top of the environment configuration."""
    from img2text.config import get_config

    config = get_config()

    if args.no_preprocessing:
        config.image.enabled = False
    if args.lang:
        config.ocr.tesseract_lang = args.lang
    if args.psm is not None:
        config.ocr.psm = args.psm
    if args.oem is not None:
        config.ocr.oem = args.oem
    if args.no_preserve_spaces:
        config.ocr.preserve_interword_spaces = False
    if args.block_level:
        config.ocr.block_level = args.block_level
    if args.row_threshold is not None:
        config.layout.row_threshold = args.row_threshold
    if args.debug:
        config.debug_mode = True

    return config


def collect_inputs(input_path: Path) -> List[Path]:
    """Resolve the --input argument to a list of image files."""
    from img2text.utils.io import detect_input_type, list_images_in_folder

    input_type = detect_input_type(input_path)
    logger.info(f"Input type detected: {input_type}")

    if input_type == "image":
        return [input_path]
    if input_type == "image_folder":
        return list_images_in_folder(input_path)
    return []


def run_pipeline(args, engine=None) -> int:
    """Run the conversion for every input image."""
    from img2text.utils.converter import ImageToTextConverter
    from img2text.utils.io import (
        UploadValidationError, decode_image, ensure_dir, save_image, save_json, save_text
    )
    from img2text.utils.images import create_comparison_image
    from img2text.utils.ocr_text import TesseractEngine

    start_time = time.time()
    config = build_config(args)

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input not found: {input_path}")
        return 1

    inputs = collect_inputs(input_path)
    if not inputs:
        logger.error(f"Unsupported input: {input_path}")
        return 1

    output_dir: Optional[Path] = ensure_dir(args.output) if args.output else None
    formats = set(args.format)
    if "all" in formats:
        formats = {"text", "json"}

    if engine is None:
        engine = TesseractEngine.from_config(config.ocr)

    converter = ImageToTextConverter(
        engine,
        preprocessing_enabled=config.image.enabled,
        image_config=config.image,
        layout_config=config.layout,
        upload_config=config.upload
    )

    failures = 0
    with converter:
        if not converter.start():
            logger.error(converter.status_message)
            return 1

        for image_path in inputs:
            data = image_path.read_bytes()

            try:
                result = converter.convert(data, image_path.name)
            except UploadValidationError as e:
                logger.error(f"{image_path.name}: {e}")
                failures += 1
                continue

            if result is None:
                logger.error(f"{image_path.name}: {converter.status_message}")
                failures += 1
                continue

            if result.is_error:
                failures += 1

            if output_dir is None:
                if len(inputs) > 1 and not args.quiet:
                    print(f"==> {image_path.name} <==")
                print(result.text)
                continue

            stem = image_path.stem
            if "text" in formats:
                path = save_text(result.text, output_dir / f"{stem}.txt")
                logger.info(f"Saved text: {path}")
            if "json" in formats:
                path = save_json(result.to_dict(), output_dir / f"{stem}.json")
                logger.info(f"Saved JSON: {path}")

            if config.debug_mode and result.was_preprocessed and result.processed_image:
                processed = decode_image(result.processed_image)
                save_image(processed, output_dir / f"{stem}_processed.png")
                comparison = create_comparison_image(decode_image(data), processed)
                save_image(comparison, output_dir / f"{stem}_comparison.png")

    elapsed = time.time() - start_time

    if output_dir is not None and not args.quiet:
        print("\n" + "="*60)
        print("IMAGE TO TEXT COMPLETE")
        print("="*60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        print(f"Images processed: {len(inputs)}")
        print(f"Failures: {failures}")
        print(f"Processing time: {elapsed:.2f}s")
        print("="*60)

    return 1 if failures else 0


def main():
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    # Check dependencies
    if not check_dependencies():
        sys.exit(1)

    # Run pipeline
    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
