"""
Geometry Resolver
=================

Turns image placements into normalized, top-left-origin page regions.

For a placement with CTM [a b c d e f] and an image of W x H pixels, the PDF
space rectangle is origin (e, f), size (|a| * W, |d| * H). That rectangle is
shifted by the media box origin, divided by the page size and flipped so that
y grows downwards:

    y' = 1 - (y + height)

Regions are clamped to [0, 1] only when an edge overflows by more than the
policy tolerance, so images bleeding slightly off the page keep their true
extent.

When a placement cannot be resolved (no `Do` for a cataloged image, missing
pixel dimensions, degenerate matrix) a fallback rectangle is synthesized from
the image's aspect ratio and tagged as estimated with reduced confidence.
Every cataloged image yields exactly one region per placement, or one
fallback region when it is never placed.
"""

import logging
from typing import Iterable, List, Optional

from pdf2regions.exceptions import UnresolvedPlacementError
from pdf2regions.locator.data_types import (
    AnnotationRecord,
    ImagePlacement,
    NormalizedRect,
    NormalizedRegion,
    PdfRect,
    SourceKind,
    StreamDescriptor,
)
from pdf2regions.locator.resource_catalog import ResourceCatalog
from pdf2regions.locator.util.policy import DEFAULT_GEOMETRY_POLICY, GeometryPolicy

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


class GeometryResolver:
    def __init__(
        self,
        media_box: PdfRect,
        *,
        policy: GeometryPolicy = DEFAULT_GEOMETRY_POLICY,
    ) -> None:
        left, bottom, right, top = (float(v) for v in media_box)
        self.left = min(left, right)
        self.bottom = min(bottom, top)
        self.page_width = abs(right - left)
        self.page_height = abs(top - bottom)
        self.policy = policy

    @property
    def has_page_size(self) -> bool:
        return self.page_width > 0 and self.page_height > 0

    # -------------------------------------------------------------------------
    # normalization
    # -------------------------------------------------------------------------

    def normalize_pdf_rect(
        self, x: float, y: float, width: float, height: float
    ) -> tuple[NormalizedRect, bool]:
        """
        Normalize a PDF space rectangle (bottom-left origin).

        Returns the top-left-origin rectangle and whether it was clamped.
        """
        nx = (x - self.left) / self.page_width
        ny = (y - self.bottom) / self.page_height
        nw = width / self.page_width
        nh = height / self.page_height
        rect = NormalizedRect(x=nx, y=1.0 - (ny + nh), width=nw, height=nh)
        return self._clamp(rect)

    def _clamp(self, rect: NormalizedRect) -> tuple[NormalizedRect, bool]:
        limit = self.policy.overflow_tolerance + _EPSILON
        overflows = (
            rect.x < -limit
            or rect.y < -limit
            or rect.right > 1.0 + limit
            or rect.bottom > 1.0 + limit
        )
        if not overflows:
            return rect, False

        left = min(max(rect.x, 0.0), 1.0)
        top = min(max(rect.y, 0.0), 1.0)
        right = min(max(rect.right, 0.0), 1.0)
        bottom = min(max(rect.bottom, 0.0), 1.0)
        clamped = NormalizedRect(
            x=left,
            y=top,
            width=max(right - left, 0.0),
            height=max(bottom - top, 0.0),
        )
        return clamped, True

    # -------------------------------------------------------------------------
    # placements
    # -------------------------------------------------------------------------

    def placement_rect(
        self, placement: ImagePlacement, descriptor: StreamDescriptor
    ) -> PdfRect:
        """PDF space (x, y, width, height) covered by a placement."""
        m = placement.resolved_matrix
        if self.policy.pixel_scaled_images:
            if not descriptor.has_dimensions:
                raise UnresolvedPlacementError(
                    descriptor.name,
                    f"Image [{descriptor.name}] declares no pixel dimensions "
                    f"({descriptor.pixel_width}x{descriptor.pixel_height})",
                )
            return (
                m.e,
                m.f,
                abs(m.a) * descriptor.pixel_width,
                abs(m.d) * descriptor.pixel_height,
            )

        # image space is the unit square mapped through the CTM
        corners = [m.apply(0, 0), m.apply(1, 0), m.apply(0, 1), m.apply(1, 1)]
        xs = [p[0] for p in corners]
        ys = [p[1] for p in corners]
        return (min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    def resolve(
        self, placement: ImagePlacement, descriptor: StreamDescriptor
    ) -> NormalizedRegion:
        """
        Resolve one placement to a region.

        Raises:
            UnresolvedPlacementError: the page box, the matrix or the image
                dimensions do not give a rectangle with positive area.
        """
        if not self.has_page_size:
            raise UnresolvedPlacementError(
                descriptor.name,
                f"Degenerate page box {self.page_width}x{self.page_height}",
            )
        x, y, width, height = self.placement_rect(placement, descriptor)
        if width <= 0 or height <= 0:
            raise UnresolvedPlacementError(
                descriptor.name,
                f"Placement of [{descriptor.name}] has no area "
                f"(CTM {placement.resolved_matrix.as_tuple()})",
            )

        rect, clamped = self.normalize_pdf_rect(x, y, width, height)
        if clamped:
            logger.debug("Region for [%s] clamped to the page", descriptor.name)
        return NormalizedRegion(
            name=descriptor.name,
            page_index=placement.page_index,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
            confidence=self.policy.resolved_confidence,
            source_kind=SourceKind.IMAGE,
            estimated=False,
            clamped=clamped,
        )

    def resolve_with_fallback(
        self,
        placement: Optional[ImagePlacement],
        descriptor: StreamDescriptor,
        page_index: int = 0,
    ) -> NormalizedRegion:
        if placement is None:
            logger.warning(
                "Image [%s] on page %d is never drawn; using estimated geometry",
                descriptor.name,
                page_index,
            )
            return self.fallback_region(descriptor, page_index)
        try:
            return self.resolve(placement, descriptor)
        except UnresolvedPlacementError as e:
            logger.warning("%s; using estimated geometry", e)
            return self.fallback_region(
                descriptor, placement.page_index, hint=placement.dimension_hint
            )

    def resolve_all(
        self,
        catalog: ResourceCatalog,
        placements: Iterable[ImagePlacement],
        page_index: int = 0,
    ) -> List[NormalizedRegion]:
        """
        One region per placement, in stream order, then one fallback region
        for every cataloged image that was never placed, in catalog order.
        """
        regions: List[NormalizedRegion] = []
        placed: set[str] = set()
        for placement in placements:
            descriptor = catalog.lookup(placement.x_object_name)
            if descriptor is None:
                continue
            placed.add(descriptor.name)
            regions.append(self.resolve_with_fallback(placement, descriptor, page_index))
        for descriptor in catalog:
            if descriptor.name not in placed:
                regions.append(self.resolve_with_fallback(None, descriptor, page_index))
        return regions

    # -------------------------------------------------------------------------
    # fallback
    # -------------------------------------------------------------------------

    def fallback_region(
        self,
        descriptor: StreamDescriptor,
        page_index: int = 0,
        *,
        hint: Optional[tuple[float, float]] = None,
    ) -> NormalizedRegion:
        """
        A rectangle centered horizontally below the top margin, keeping the
        image's aspect ratio within the policy's width and height caps.
        """
        policy = self.policy
        if descriptor.has_dimensions:
            pixel_width, pixel_height = descriptor.pixel_width, descriptor.pixel_height
        elif hint is not None:
            pixel_width, pixel_height = hint
        else:
            pixel_width = pixel_height = 0

        width = policy.fallback_max_width
        height = policy.fallback_max_height
        if pixel_width > 0 and pixel_height > 0 and self.has_page_size:
            # fit in page points so the aspect ratio survives normalization
            max_width_pts = policy.fallback_max_width * self.page_width
            max_height_pts = policy.fallback_max_height * self.page_height
            scale = min(max_width_pts / pixel_width, max_height_pts / pixel_height)
            width = pixel_width * scale / self.page_width
            height = pixel_height * scale / self.page_height

        return NormalizedRegion(
            name=descriptor.name,
            page_index=page_index,
            x=(1.0 - width) / 2,
            y=policy.fallback_top_margin + (policy.fallback_band_height - height) / 2,
            width=width,
            height=height,
            confidence=policy.fallback_confidence,
            source_kind=SourceKind.IMAGE,
            estimated=True,
            clamped=False,
        )

    # -------------------------------------------------------------------------
    # annotations
    # -------------------------------------------------------------------------

    def annotation_region(
        self, record: AnnotationRecord, page_index: int = 0
    ) -> Optional[NormalizedRegion]:
        if not self.has_page_size:
            return None
        left, bottom, right, top = record.rect
        x, y = min(left, right), min(bottom, top)
        width, height = abs(right - left), abs(top - bottom)
        if width <= 0 or height <= 0:
            logger.debug("Annotation [%s] has an empty /Rect; ignored", record.subtype)
            return None
        rect, clamped = self.normalize_pdf_rect(x, y, width, height)
        return NormalizedRegion(
            name=record.name or record.subtype,
            page_index=page_index,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
            confidence=self.policy.annotation_confidence,
            source_kind=SourceKind.ANNOTATION,
            estimated=False,
            clamped=clamped,
        )
