"""Optical text recognition over captured frames.

Public API:
    parse_tsv -- Aggregate tesseract TSV into an OCRResult
    find_text -- Search lines and/or words of an OCRResult
    run_tesseract / ocr_frame -- Invoke the tesseract CLI
"""

from vmrc.ocr.aggregate import OCRError, find_text, parse_tsv
from vmrc.ocr.tesseract import OCROptions, ocr_frame, run_tesseract

__all__ = ["OCRError", "OCROptions", "find_text", "ocr_frame", "parse_tsv", "run_tesseract"]
