"""
pdf2regions: locate embedded images and text strings on PDF pages.

Reconstructs where raster images are drawn by walking each page's content
stream and composing its transformation matrices, and where target strings
sit through a tiered exact / partial / fuzzy text search. Results are
normalized, top-left-origin rectangles with a confidence score.
"""

import io
from pathlib import Path
from typing import Any, Generator, Iterable

from pdf2regions.locator.data_types import (
    DocumentMetadata,
    DocumentRegions,
    NormalizedRect,
    NormalizedRegion,
    PageModel,
    PageRegions,
    TextSpan,
)
from pdf2regions.locator.pipeline import ContentExtractionPipeline
from pdf2regions.locator.serialization import deserialize_regions, serialize_regions
from pdf2regions.locator.util.policy import (
    Granularity,
    GeometryPolicy,
    TextSearchPolicy,
)

__version__ = "0.1.0"


def read_pdf_regions(
    file_like: io.BytesIO,
    targets: Iterable[str] = (),
    path: str | None = None,
    *,
    pipeline: ContentExtractionPipeline | None = None,
) -> Generator[DocumentRegions, Any, None]:
    """Locate image regions and target strings in a PDF held in memory."""
    from pdf2regions.locator.pdf_page_model import (
        read_pdf_regions as _read_pdf_regions,
    )

    return _read_pdf_regions(file_like, targets, path, pipeline=pipeline)


def locate_file(
    path: str | Path,
    targets: Iterable[str] = (),
    *,
    pipeline: ContentExtractionPipeline | None = None,
) -> DocumentRegions:
    """
    Locate image regions and target strings in a PDF file.

    Args:
        path: Path to the PDF file.
        targets: Strings to locate on every page.
        pipeline: A configured pipeline; the default policies otherwise.

    Returns:
        DocumentRegions with one PageRegions per page.

    Raises:
        RegionExtractionFailedError: If the file cannot be read as a PDF.
        FileNotFoundError: If the file does not exist.

    Example:
        >>> import pdf2regions
        >>> result = pdf2regions.locate_file("report.pdf", ["quarterly revenue"])
        >>> for page in result.iterator():
        ...     for region in page.regions:
        ...         print(page.page_index, region.name, region.x, region.y)
    """
    path = Path(path)
    with open(path, "rb") as f:
        return next(read_pdf_regions(io.BytesIO(f.read()), targets, str(path), pipeline=pipeline))


__all__ = [
    # Version
    "__version__",
    # Main functions
    "read_pdf_regions",
    "locate_file",
    "serialize_regions",
    "deserialize_regions",
    # Pipeline and configuration
    "ContentExtractionPipeline",
    "GeometryPolicy",
    "TextSearchPolicy",
    "Granularity",
    # Results
    "DocumentMetadata",
    "DocumentRegions",
    "PageRegions",
    "NormalizedRect",
    "NormalizedRegion",
    "TextSpan",
    "PageModel",
]
