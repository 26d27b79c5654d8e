import logging
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from pdf2regions.locator.content_stream_walker import ContentStreamWalker
from pdf2regions.locator.data_types import (
    DocumentMetadata,
    DocumentRegions,
    NormalizedRegion,
    PageModel,
    PageRegions,
    TextSpan,
)
from pdf2regions.locator.geometry_resolver import GeometryResolver
from pdf2regions.locator.resource_catalog import ResourceCatalog
from pdf2regions.locator.text_span_locator import TextSpanLocator
from pdf2regions.locator.util.policy import (
    DEFAULT_GEOMETRY_POLICY,
    DEFAULT_TEXT_SEARCH_POLICY,
    GeometryPolicy,
    TextSearchPolicy,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Stamp and image annotations paint their own appearance at /Rect
ANNOTATION_SUBTYPES = frozenset({"Stamp", "Image"})

_EMPTY_BOX = (0.0, 0.0, 0.0, 0.0)


def _read_page(call: Callable[[], T], default: T, what: str, page_index: int) -> T:
    try:
        value = call()
    except Exception as e:
        logger.warning("Page %d: cannot read %s: %s", page_index, what, e)
        return default
    return default if value is None else value


class ContentExtractionPipeline:
    """
    Locates images and target strings page by page.

    Every page gets its own catalog, walker and resolver; nothing is carried
    from one page to the next, so pages can be processed in any order or in
    parallel by the caller.
    """

    def __init__(
        self,
        *,
        geometry_policy: GeometryPolicy = DEFAULT_GEOMETRY_POLICY,
        search_policy: TextSearchPolicy = DEFAULT_TEXT_SEARCH_POLICY,
        include_annotations: bool = False,
        strict_text_search: bool = False,
    ) -> None:
        self.geometry_policy = geometry_policy
        self.search_policy = search_policy
        self.include_annotations = include_annotations
        self.strict_text_search = strict_text_search

    def process_page(
        self,
        page: PageModel,
        page_index: int = 0,
        targets: Iterable[str] = (),
    ) -> PageRegions:
        resolver = self._resolver(page, page_index)

        regions = self._image_regions(page, page_index, resolver)
        if self.include_annotations:
            regions.extend(self._annotation_regions(page, page_index, resolver))

        spans = self._text_spans(page, page_index, resolver, targets)

        if not regions and not spans:
            logger.debug("Page %d produced no regions", page_index)
        return PageRegions(page_index=page_index, regions=regions, spans=spans)

    def process_document(
        self,
        pages: Iterable[PageModel],
        targets: Iterable[str] = (),
        metadata: Optional[DocumentMetadata] = None,
    ) -> DocumentRegions:
        targets = list(targets)
        result = DocumentRegions(metadata=metadata or DocumentMetadata())
        for page_index, page in enumerate(pages):
            result.pages.append(self.process_page(page, page_index, targets))
        result.metadata.total_pages = len(result.pages)
        return result

    def _resolver(self, page: PageModel, page_index: int) -> GeometryResolver:
        media_box = _read_page(page.media_box, _EMPTY_BOX, "media box", page_index)
        try:
            return GeometryResolver(media_box, policy=self.geometry_policy)
        except (TypeError, ValueError) as e:
            logger.warning("Page %d: unusable media box %r: %s", page_index, media_box, e)
            return GeometryResolver(_EMPTY_BOX, policy=self.geometry_policy)

    def _image_regions(
        self, page: PageModel, page_index: int, resolver: GeometryResolver
    ) -> List[NormalizedRegion]:
        resources = _read_page(page.resources, {}, "resources", page_index)
        catalog = ResourceCatalog.from_resources(resources)
        if not catalog:
            return []

        content = _read_page(page.content_bytes, b"", "content stream", page_index)
        walker = ContentStreamWalker(catalog, page_index, policy=self.geometry_policy)
        placements = walker.walk(content)
        logger.debug(
            "Page %d: %d image(s) cataloged, %d placement(s)",
            page_index,
            len(catalog),
            len(placements),
        )
        return resolver.resolve_all(catalog, placements, page_index)

    def _annotation_regions(
        self, page: PageModel, page_index: int, resolver: GeometryResolver
    ) -> List[NormalizedRegion]:
        regions = []
        for record in _read_page(page.annotations, [], "annotations", page_index):
            if record.subtype not in ANNOTATION_SUBTYPES:
                continue
            region = resolver.annotation_region(record, page_index)
            if region is not None:
                regions.append(region)
        return regions

    def _text_spans(
        self,
        page: PageModel,
        page_index: int,
        resolver: GeometryResolver,
        targets: Iterable[Any],
    ) -> List[TextSpan]:
        # repeated targets are located once
        unique_targets = [t for t in dict.fromkeys(targets) if t]
        if not unique_targets:
            return []
        locator = TextSpanLocator(
            page, page_index, resolver=resolver, policy=self.search_policy
        )
        spans = []
        for target in unique_targets:
            span = locator.locate(target, strict=self.strict_text_search)
            if span is not None:
                spans.append(span)
        return spans
