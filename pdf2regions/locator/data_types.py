import typing
from abc import abstractmethod
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol

# (left, bottom, right, top) in PDF user space, bottom-left origin
PdfRect = tuple[float, float, float, float]


class SourceKind(str, Enum):
    IMAGE = "image"
    ANNOTATION = "annotation"


class MatchMethod(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"


@dataclass
class FileMetadataInterface:
    filename: str | None = None
    file_extension: str | None = None
    file_path: str | None = None
    folder_path: str | None = None

    def populate_from_path(self, path: str | Path | None) -> None:
        """Populate file metadata fields from a path."""
        if path is None:
            return
        p = Path(path)
        self.filename = p.name
        self.file_extension = p.suffix
        self.file_path = str(p.resolve()) if p.exists() else str(p)
        self.folder_path = (
            str(p.parent.resolve()) if p.parent.exists() else str(p.parent)
        )

    def to_dict(self) -> dict:
        return asdict(self)


###################
# object model
###################


@dataclass(frozen=True)
class TextSelection:
    """One hit of the text search primitive.

    A hit that wraps across lines or font runs is reported as several
    fragment rectangles, in page order.
    """

    rects: tuple[PdfRect, ...] = ()
    text: str = ""


@dataclass(frozen=True)
class AnnotationRecord:
    subtype: str
    rect: PdfRect
    name: str = ""


class PageModel(Protocol):
    """The slice of a PDF page object model the locator reads."""

    @abstractmethod
    def resources(self) -> Mapping[str, Any]:
        """The page resource dictionary (`/XObject`, `/Font`, ...)."""
        ...

    @abstractmethod
    def content_bytes(self) -> bytes:
        """Decoded content stream bytes; empty when the page has none."""
        ...

    @abstractmethod
    def media_box(self) -> PdfRect:
        ...

    @abstractmethod
    def search(self, needle: str) -> List[TextSelection]:
        """Case-insensitive substring search, hits in page order."""
        ...

    @abstractmethod
    def plain_text(self) -> str:
        ...

    @abstractmethod
    def annotations(self) -> List[AnnotationRecord]:
        ...


###################
# geometry
###################


@dataclass(frozen=True)
class AffineMatrix:
    """
    A PDF transformation matrix [a b c d e f].

    A point (x, y) maps to (a*x + c*y + e, b*x + d*y + f).
    """

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def identity(cls) -> "AffineMatrix":
        return cls()

    @classmethod
    def from_values(cls, values: typing.Sequence[float]) -> "AffineMatrix":
        if len(values) != 6:
            raise ValueError(f"Expected 6 matrix values, got {len(values)}")
        return cls(*(float(value) for value in values))

    def concatenate(self, other: "AffineMatrix") -> "AffineMatrix":
        """Return self o other: `other` is applied first, then `self`."""
        return AffineMatrix(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    def apply(self, x: float, y: float) -> tuple[float, float]:
        return (
            self.a * x + self.c * y + self.e,
            self.b * x + self.d * y + self.f,
        )

    def is_dimension_hint(self, threshold: float) -> bool:
        """
        True for a `cm` some producers emit only to carry pixel dimensions:
        [w 0 0 h 0 0] with both diagonal terms above `threshold`.
        """
        return (
            self.b == 0
            and self.c == 0
            and self.e == 0
            and self.f == 0
            and self.a > threshold
            and self.d > threshold
        )

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return (self.a, self.b, self.c, self.d, self.e, self.f)


@dataclass(frozen=True)
class StreamDescriptor:
    """An XObject classified as an image, with its declared properties."""

    name: str
    pixel_width: int = 0
    pixel_height: int = 0
    filter_kind: str = ""
    declared_subtype: str = ""
    # which rule classified it: subtype, dimensions or filter
    classified_by: str = "subtype"

    @property
    def has_dimensions(self) -> bool:
        return self.pixel_width > 0 and self.pixel_height > 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ImagePlacement:
    x_object_name: str
    resolved_matrix: AffineMatrix
    page_index: int = 0
    # (width, height) carried by a preceding pixel-dimension `cm`, if any
    dimension_hint: Optional[tuple[float, float]] = None


@dataclass
class NormalizedRect:
    """A rectangle as fractions of the page box, top-left origin."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def union(self, other: "NormalizedRect") -> "NormalizedRect":
        left = min(self.x, other.x)
        top = min(self.y, other.y)
        right = max(self.right, other.right)
        bottom = max(self.bottom, other.bottom)
        return NormalizedRect(x=left, y=top, width=right - left, height=bottom - top)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NormalizedRegion:
    name: str = ""
    page_index: int = 0
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    confidence: float = 1.0
    source_kind: SourceKind = SourceKind.IMAGE
    # True when the geometry was synthesized instead of read from the stream
    estimated: bool = False
    clamped: bool = False

    @property
    def rect(self) -> NormalizedRect:
        return NormalizedRect(x=self.x, y=self.y, width=self.width, height=self.height)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TextSpan:
    content: str = ""
    page_index: int = 0
    rect: NormalizedRect = field(default_factory=NormalizedRect)
    match_quality: float = 0.0
    match_method: MatchMethod = MatchMethod.EXACT
    # the page text the match was anchored on
    matched_text: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


###################
# results
###################


@dataclass
class PageRegions:
    page_index: int = 0
    regions: List[NormalizedRegion] = field(default_factory=list)
    spans: List[TextSpan] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.regions and not self.spans

    def image_regions(self) -> List[NormalizedRegion]:
        return [r for r in self.regions if r.source_kind == SourceKind.IMAGE]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DocumentMetadata(FileMetadataInterface):
    total_pages: int = 0


@dataclass
class DocumentRegions:
    pages: List[PageRegions] = field(default_factory=list)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)

    def iterator(self) -> typing.Iterator[PageRegions]:
        for page in self.pages:
            yield page

    def get_metadata(self) -> DocumentMetadata:
        return self.metadata

    def all_regions(self) -> List[NormalizedRegion]:
        return [region for page in self.pages for region in page.regions]

    def best_span(self, target: str) -> Optional[TextSpan]:
        """Highest quality span for `target` over all pages; ties keep the earliest page."""
        best: Optional[TextSpan] = None
        for page in self.pages:
            for span in page.spans:
                if span.content != target:
                    continue
                if best is None or span.match_quality > best.match_quality:
                    best = span
        return best

    def to_dict(self) -> dict:
        return asdict(self)
