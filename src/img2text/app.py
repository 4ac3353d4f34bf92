#!/usr/bin/env python
"""
Streamlit Web UI for the Image to Text converter.

Run with:
    streamlit run src/img2text/app.py

Features:
- Upload image files (PNG, JPG, TIFF, BMP, WEBP, GIF)
- OCR engine status and progress indicator
- Original vs. preprocessed preview
- Copy or download the extracted text
"""

import sys
import atexit
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import streamlit as st

import logging
logger = logging.getLogger("img2text.app")


# Page config must be first Streamlit command
st.set_page_config(
    page_title="Image to Text",
    page_icon="📝",
    layout="wide",
    initial_sidebar_state="expanded"
)


def load_css():
    """Load custom CSS styles."""
    st.markdown("""
    <style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        text-align: center;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1.2rem;
        color: #888;
        text-align: center;
        margin-bottom: 2rem;
    }
    </style>
    """, unsafe_allow_html=True)


def init_session_state():
    """Initialize session state variables."""
    if "result" not in st.session_state:
        st.session_state.result = None
    if "error" not in st.session_state:
        st.session_state.error = None


@st.cache_resource(show_spinner=False)
def get_engine(language: str, psm: int, oem: int, preserve_spaces: bool, block_level: str):
    """One shared OCR engine per configuration, released at interpreter exit."""
    from img2text.config import get_config
    from img2text.utils.ocr_text import TesseractEngine

    engine = TesseractEngine(
        language=language,
        psm=psm,
        oem=oem,
        preserve_interword_spaces=preserve_spaces,
        block_level=block_level,
        tesseract_cmd=get_config().ocr.tesseract_cmd
    )
    atexit.register(engine.terminate)
    return engine


def render_sidebar(config) -> dict:
    """Render sidebar with settings."""
    from img2text.utils.ocr_text import BLOCK_LEVELS

    st.sidebar.header("⚙️ Settings")

    st.sidebar.subheader("Preprocessing")

    preprocessing = st.sidebar.checkbox(
        "Enhance image",
        value=config.image.enabled,
        help="Grayscale, contrast boost, black/white threshold and upscaling of small images"
    )

    st.sidebar.subheader("OCR Engine")

    language = st.sidebar.text_input(
        "Language",
        value=config.ocr.tesseract_lang,
        help="Tesseract language code(s), e.g. 'eng' or 'eng+deu'"
    )

    psm_options = {
        "Automatic (3)": 3,
        "Single column (4)": 4,
        "Single block (6)": 6,
        "Single line (7)": 7,
        "Sparse text (11)": 11,
    }
    default_psm = next(
        (label for label, value in psm_options.items() if value == config.ocr.psm),
        "Automatic (3)"
    )
    psm_display = st.sidebar.selectbox(
        "Page segmentation",
        list(psm_options.keys()),
        index=list(psm_options.keys()).index(default_psm),
        help="How Tesseract splits the page into blocks"
    )

    preserve_spaces = st.sidebar.checkbox(
        "Preserve spaces",
        value=config.ocr.preserve_interword_spaces,
        help="Keep runs of spaces between words"
    )

    st.sidebar.subheader("Layout")

    block_level = st.sidebar.selectbox(
        "Block level",
        list(BLOCK_LEVELS),
        index=list(BLOCK_LEVELS).index(config.ocr.block_level),
        help="Granularity of OCR blocks used to rebuild rows and paragraphs"
    )

    row_threshold = st.sidebar.slider(
        "Row threshold (px)",
        min_value=1,
        max_value=100,
        value=config.layout.row_threshold,
        help="Blocks closer than this vertically are placed on the same row"
    )

    return {
        "preprocessing": preprocessing,
        "language": language.strip() or config.ocr.tesseract_lang,
        "psm": psm_options[psm_display],
        "oem": config.ocr.oem,
        "preserve_spaces": preserve_spaces,
        "block_level": block_level,
        "row_threshold": row_threshold,
    }


def build_converter(config, settings: dict):
    """Create the converter for this run, sharing the cached engine."""
    from img2text.utils.converter import ImageToTextConverter

    engine = get_engine(
        settings["language"],
        settings["psm"],
        settings["oem"],
        settings["preserve_spaces"],
        settings["block_level"]
    )

    config.layout.row_threshold = settings["row_threshold"]

    return ImageToTextConverter(
        engine,
        preprocessing_enabled=settings["preprocessing"],
        image_config=config.image,
        layout_config=config.layout,
        upload_config=config.upload
    )


def render_engine_status(converter):
    """Start the engine if needed and show its status."""
    engine = converter.engine

    if engine.is_ready:
        return

    with st.status("Loading OCR engine...", expanded=False) as status:
        progress_bar = st.progress(0, text="Loading OCR engine...")

        def on_progress(event):
            progress_bar.progress(int(event.progress * 100), text=event.status.capitalize())

        if converter.start(progress_callback=on_progress):
            status.update(label=converter.status_message, state="complete")
        else:
            status.update(label=converter.status_message, state="error")


def process_upload(converter, uploaded_file):
    """Run the uploaded file through the converter."""
    from img2text.utils.io import UploadValidationError

    progress_bar = st.progress(0, text="Processing your image...")

    def on_progress(event):
        progress_bar.progress(int(event.progress * 100), text=event.status.capitalize())

    try:
        result = converter.convert(
            uploaded_file.getvalue(),
            uploaded_file.name,
            mime_type=uploaded_file.type,
            progress_callback=on_progress
        )
    except UploadValidationError as e:
        st.session_state.error = str(e)
        st.session_state.result = None
        return
    finally:
        progress_bar.empty()

    if result is None:
        st.session_state.error = converter.status_message
        return

    st.session_state.error = None
    st.session_state.result = result


def render_preview(uploaded_file, result):
    """Show the uploaded image next to the image the engine saw."""
    cols = st.columns(2)

    with cols[0]:
        st.caption("Original")
        st.image(uploaded_file.getvalue(), width="stretch")

    with cols[1]:
        if (result is not None and result.source_name == uploaded_file.name
                and result.was_preprocessed and result.processed_image):
            st.caption(f"Preprocessed (scale {result.scale_factor:g}x)")
            st.image(result.processed_image, width="stretch")


def render_result(result):
    """Render extracted text and downloads."""
    from img2text.utils.io import to_json

    st.subheader("📄 Extracted Text")

    if result.is_error:
        st.error(result.text)
        return

    if result.status == "empty":
        st.info(result.text)
        return

    cols = st.columns(3)
    with cols[0]:
        st.metric("Confidence", f"{result.confidence:.0%}")
    with cols[1]:
        st.metric("Blocks", len(result.blocks))
    with cols[2]:
        st.metric("Time", f"{result.processing_time_seconds:.1f}s")

    # st.code renders a copy-to-clipboard button
    st.code(result.text, language=None)

    stem = Path(result.source_name).stem
    cols = st.columns(2)
    with cols[0]:
        st.download_button(
            "📝 Text",
            result.text,
            file_name=f"{stem}.txt",
            mime="text/plain",
            width="stretch"
        )
    with cols[1]:
        st.download_button(
            "📄 JSON",
            to_json(result.to_dict()),
            file_name=f"{stem}.json",
            mime="application/json",
            width="stretch"
        )


def main():
    """Main application."""
    from img2text.config import get_config

    load_css()
    init_session_state()

    config = get_config()

    st.markdown('<h1 class="main-header">📝 Image to Text</h1>', unsafe_allow_html=True)
    st.markdown(
        '<p class="sub-header">Upload your image and get the text content in seconds.</p>',
        unsafe_allow_html=True
    )

    settings = render_sidebar(config)
    converter = build_converter(config, settings)

    render_engine_status(converter)

    st.markdown("---")

    uploaded_file = st.file_uploader(
        "Upload an image",
        type=config.upload.accepted_extensions,
        help=f"PNG, JPG or JPEG (max. {config.upload.max_file_size_mb:g}MB)"
    )

    if uploaded_file:
        col1, col2 = st.columns([2, 1])

        with col1:
            st.info(f"📁 **{uploaded_file.name}** ({uploaded_file.size / 1024:.1f} KB)")

        with col2:
            convert_btn = st.button(
                "🚀 Extract Text",
                width="stretch",
                type="primary",
                disabled=not converter.engine.is_ready
            )

        if convert_btn:
            with st.spinner("Processing your image..."):
                process_upload(converter, uploaded_file)

        render_preview(uploaded_file, st.session_state.result)

    if st.session_state.error:
        st.error(st.session_state.error)

    if st.session_state.result is not None:
        st.markdown("---")
        render_result(st.session_state.result)

    converter.close(terminate_engine=False)


if __name__ == "__main__":
    main()
