import fitz
import pytest
from PySide6.QtCore import QCoreApplication


def make_pdf(pages=((600, 800, 0),)) -> bytes:
    """Build a PDF in memory; each page is (width, height, rotation)."""
    doc = fitz.open()
    for width, height, rotation in pages:
        page = doc.new_page(width=width, height=height)
        if rotation:
            page.set_rotation(rotation)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf()


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
