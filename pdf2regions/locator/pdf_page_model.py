"""
pypdf Page Model
================

Adapts a pypdf `PageObject` to the `PageModel` protocol the locator consumes,
and provides the file level entry point `read_pdf_regions`.

Text geometry
-------------
pypdf reports text runs through the `visitor_text` callback of
`extract_text`, together with the text matrix and the CTM in effect when the
run was shown. The adapter keeps each run as a fragment:

    - origin: the text matrix translation mapped through the CTM
    - size:   the font size scaled by the vertical terms of both matrices
    - width:  estimated as half an em per character (glyph widths are not
              read from the font)
    - height: from 0.2 em below to 0.8 em above the baseline

Search is case-insensitive and ignores whitespace entirely, so runs that
pypdf splits or joins differently from the visual layout still match. A hit
covering several runs yields one rectangle per run; a run matched only in
part is sliced proportionally to the matched characters.

Known Limitations
-----------------
- Rectangles are estimates: no glyph metrics, no rotated text handling
- Text inside form XObjects is reported by pypdf with the form's matrix only
- Encrypted PDFs are opened with an empty password or rejected
"""

import io
import logging
from dataclasses import dataclass
from typing import Any, Generator, Iterable, List, Mapping, Optional

from pypdf import PdfReader

from pdf2regions.exceptions import RegionExtractionFailedError, RegionLocatorError
from pdf2regions.locator.data_types import (
    AffineMatrix,
    AnnotationRecord,
    DocumentMetadata,
    DocumentRegions,
    PdfRect,
    TextSelection,
)
from pdf2regions.locator.pipeline import ContentExtractionPipeline

logger = logging.getLogger(__name__)

# glyph box estimate, in em
_CHAR_WIDTH_EM = 0.5
_DESCENT_EM = 0.2
_ASCENT_EM = 0.8
# horizontal gap (in em) read as a word break when joining runs
_WORD_GAP_EM = 0.15
# vertical gap (in line heights) read as a paragraph break
_PARAGRAPH_GAP_LINES = 1.8


@dataclass(frozen=True)
class _Fragment:
    text: str
    x: float
    y: float
    size: float

    @property
    def width(self) -> float:
        return len(self.text) * self.size * _CHAR_WIDTH_EM

    @property
    def right(self) -> float:
        return self.x + self.width

    def slice_rect(self, first: int, last: int) -> PdfRect:
        """Rectangle of characters first..last (inclusive) of this run."""
        length = max(len(self.text), 1)
        left = self.x + self.width * first / length
        right = self.x + self.width * (last + 1) / length
        return (
            left,
            self.y - self.size * _DESCENT_EM,
            right,
            self.y + self.size * _ASCENT_EM,
        )


def _matrix(values: Any) -> AffineMatrix:
    try:
        return AffineMatrix.from_values([float(v) for v in values])
    except (TypeError, ValueError):
        return AffineMatrix.identity()


class PypdfPageModel:
    def __init__(self, page: Any) -> None:
        self.page = page
        self._fragments: Optional[List[_Fragment]] = None
        self._plain_text: Optional[str] = None
        # compacted, casefolded page text and the (fragment, offset) of each char
        self._haystack = ""
        self._char_map: List[tuple[int, int]] = []

    # -------------------------------------------------------------------------
    # object model
    # -------------------------------------------------------------------------

    def resources(self) -> Mapping[str, Any]:
        resources = self.page.get("/Resources")
        if resources is None:
            return {}
        return resources.get_object()

    def content_bytes(self) -> bytes:
        contents = self.page.get_contents()
        if contents is None:
            return b""
        return contents.get_data() or b""

    def media_box(self) -> PdfRect:
        box = self.page.mediabox
        return (float(box.left), float(box.bottom), float(box.right), float(box.top))

    def annotations(self) -> List[AnnotationRecord]:
        annots = self.page.get("/Annots")
        if annots is None:
            return []
        records = []
        for annot in annots.get_object():
            try:
                annot = annot.get_object()
                rect = [float(v) for v in annot.get("/Rect", [])]
                if len(rect) != 4:
                    continue
                subtype = str(annot.get("/Subtype", "")).lstrip("/")
                name = annot.get("/NM") or annot.get("/Name") or ""
                records.append(
                    AnnotationRecord(
                        subtype=subtype,
                        rect=(rect[0], rect[1], rect[2], rect[3]),
                        name=str(name).lstrip("/"),
                    )
                )
            except Exception as e:
                logger.warning("Skipping unreadable annotation: %s", e)
        return records

    # -------------------------------------------------------------------------
    # text
    # -------------------------------------------------------------------------

    def plain_text(self) -> str:
        self._collect_fragments()
        return self._plain_text or ""

    def search(self, needle: str) -> List[TextSelection]:
        self._collect_fragments()
        compact = "".join(needle.casefold().split())
        if not compact or not self._haystack:
            return []

        selections = []
        start = self._haystack.find(compact)
        while start >= 0:
            end = start + len(compact)
            selections.append(self._selection(start, end))
            start = self._haystack.find(compact, end)
        return selections

    def _selection(self, start: int, end: int) -> TextSelection:
        fragments = self._fragments or []
        # fragment index -> (first offset, last offset), in page order
        spans: dict[int, tuple[int, int]] = {}
        for fragment_index, offset in self._char_map[start:end]:
            first, last = spans.get(fragment_index, (offset, offset))
            spans[fragment_index] = (min(first, offset), max(last, offset))

        rects = []
        parts = []
        for fragment_index, (first, last) in spans.items():
            fragment = fragments[fragment_index]
            rects.append(fragment.slice_rect(first, last))
            parts.append(fragment.text[first : last + 1])
        return TextSelection(rects=tuple(rects), text=" ".join(parts))

    def _collect_fragments(self) -> None:
        if self._fragments is not None:
            return

        fragments: List[_Fragment] = []

        def visitor(
            text: str,
            cm: Iterable[float],
            tm: Iterable[float],
            _font_dict: Any,
            font_size: Any,
        ) -> None:
            if not text or not text.strip():
                return
            ctm = _matrix(cm)
            text_matrix = _matrix(tm)
            x, y = ctm.apply(text_matrix.e, text_matrix.f)
            scale = abs(text_matrix.d * ctm.d) or 1.0
            size = (float(font_size) if font_size else 0.0) * scale
            fragments.append(_Fragment(text=text.strip(), x=x, y=y, size=size or 10.0))

        try:
            raw_text = self.page.extract_text(visitor_text=visitor) or ""
        except Exception as e:
            logger.warning("Text extraction failed: %s", e)
            raw_text = ""
            fragments = []

        self._fragments = fragments
        if not fragments:
            self._plain_text = raw_text
            return

        self._plain_text = self._join(fragments)
        haystack = []
        char_map = []
        for fragment_index, fragment in enumerate(fragments):
            for offset, char in enumerate(fragment.text):
                if char.isspace():
                    continue
                # casefold may expand a character (e.g. the German sharp s)
                for folded in char.casefold():
                    haystack.append(folded)
                    char_map.append((fragment_index, offset))
        self._haystack = "".join(haystack)
        self._char_map = char_map

    @staticmethod
    def _join(fragments: List[_Fragment]) -> str:
        parts = [fragments[0].text]
        for previous, fragment in zip(fragments, fragments[1:]):
            line_height = max(previous.size, fragment.size)
            vertical_gap = abs(fragment.y - previous.y)
            if vertical_gap > line_height * _PARAGRAPH_GAP_LINES:
                parts.append("\n\n")
            elif vertical_gap > line_height * 0.5:
                parts.append("\n")
            elif fragment.x - previous.right > fragment.size * _WORD_GAP_EM:
                parts.append(" ")
            parts.append(fragment.text)
        return "".join(parts)


def _open_pdf_reader(file_like: io.BytesIO) -> PdfReader:
    file_like.seek(0)
    reader = PdfReader(file_like)
    if reader.is_encrypted:
        try:
            decrypt_result = reader.decrypt("")
        except Exception:
            decrypt_result = 0
        if decrypt_result == 0:
            raise RegionExtractionFailedError("PDF is encrypted or password-protected")
    return reader


def read_pdf_regions(
    file_like: io.BytesIO,
    targets: Iterable[str] = (),
    path: Optional[str] = None,
    *,
    pipeline: Optional[ContentExtractionPipeline] = None,
) -> Generator[DocumentRegions, Any, None]:
    """
    Locate images and target strings on every page of a PDF.

    Args:
        file_like: BytesIO with the complete PDF file data.
        targets: strings to locate on each page.
        path: optional source path, recorded in the returned metadata.
        pipeline: a configured pipeline; a default one otherwise.

    Yields:
        DocumentRegions: a single result with one PageRegions per page.

    Raises:
        RegionExtractionFailedError: the file cannot be opened as a PDF.
    """
    pipeline = pipeline or ContentExtractionPipeline()
    try:
        reader = _open_pdf_reader(file_like)
        pages = [PypdfPageModel(page) for page in reader.pages]
    except RegionLocatorError:
        raise
    except Exception as exc:
        raise RegionExtractionFailedError(path=path, cause=exc) from exc

    logger.debug("Locating regions in PDF with %d pages", len(pages))
    metadata = DocumentMetadata()
    metadata.populate_from_path(path)
    result = pipeline.process_document(pages, targets, metadata=metadata)

    logger.info(
        "Located %d region(s) and %d text span(s) on %d page(s)",
        len(result.all_regions()),
        sum(len(page.spans) for page in result.pages),
        len(result.pages),
    )
    yield result
