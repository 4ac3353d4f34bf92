"""
Image to Text
=============

Converts uploaded images into editable text with Tesseract OCR.

Main components:
- Image preprocessing (scaling, luminance, contrast, binarization)
- OCR engine adapter with lazy initialization and teardown
- Layout reconstruction (reading order, rows, paragraphs)
- Streamlit web UI and command-line interface
"""

__version__ = "1.0.0"
__author__ = "Image to Text Team"
