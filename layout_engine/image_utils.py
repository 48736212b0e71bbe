"""
Page image helpers — bytes → PIL pages for annotation.

- Images: EXIF transpose, RGB.
- PDFs: rasterized with pdf2image (Poppler). POPPLER_PATH is honoured, with
  the usual Windows install folders probed as a fallback.
"""

from __future__ import annotations

import glob
import io
import os
from typing import List, Optional

from PIL import Image, ImageOps
from pdf2image import convert_from_bytes

DEFAULT_PDF_DPI = 200


# =============================
# Poppler (for pdf2image)
# =============================

def get_poppler_path() -> Optional[str]:
    env = os.environ.get("POPPLER_PATH")
    if env and os.path.isdir(env):
        return env

    if os.name == "nt":
        candidates: List[str] = []
        candidates += glob.glob(r"C:\Program Files\poppler*\Library\bin")
        candidates += glob.glob(r"C:\Program Files\poppler*\bin")
        candidates += glob.glob(r"C:\poppler*\bin")
        for path in candidates:
            if os.path.isfile(os.path.join(path, "pdfinfo.exe")):
                return path
    return None


def check_poppler() -> dict:
    path = get_poppler_path()
    ok = True
    if os.name == "nt":
        ok = bool(path and os.path.isfile(os.path.join(path, "pdfinfo.exe")))
    return {"found_on_disk": bool(ok), "path": path}


# =============================
# Loading
# =============================

def is_pdf(data: bytes, content_type: Optional[str] = None, filename: Optional[str] = None) -> bool:
    if content_type and "pdf" in content_type.lower():
        return True
    if filename and filename.lower().endswith(".pdf"):
        return True
    return data[:5] == b"%PDF-"


def apply_exif_orientation(img: Image.Image) -> Image.Image:
    """Rotate pixels per EXIF Orientation so box coordinates line up; returns RGB."""
    return ImageOps.exif_transpose(img).convert("RGB")


def pdf_to_images_from_bytes(pdf_bytes: bytes, dpi: int = DEFAULT_PDF_DPI) -> List[Image.Image]:
    poppler_path = get_poppler_path()
    if poppler_path:
        return convert_from_bytes(pdf_bytes, dpi=dpi, poppler_path=poppler_path)
    return convert_from_bytes(pdf_bytes, dpi=dpi)


def load_page_images(
    data: bytes,
    *,
    content_type: Optional[str] = None,
    filename: Optional[str] = None,
    dpi: int = DEFAULT_PDF_DPI,
) -> List[Image.Image]:
    """One RGB image per page (multi-frame TIFFs included)."""
    if is_pdf(data, content_type, filename):
        return [p.convert("RGB") for p in pdf_to_images_from_bytes(data, dpi=dpi)]

    img = Image.open(io.BytesIO(data))
    pages: List[Image.Image] = []
    for frame in range(getattr(img, "n_frames", 1)):
        img.seek(frame)
        pages.append(apply_exif_orientation(img.copy()))
    return pages


def image_to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


__all__ = [
    "DEFAULT_PDF_DPI",
    "get_poppler_path",
    "check_poppler",
    "is_pdf",
    "apply_exif_orientation",
    "pdf_to_images_from_bytes",
    "load_page_images",
    "image_to_png_bytes",
]
