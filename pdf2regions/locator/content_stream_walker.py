"""
Content Stream Walker
=====================

Walks decoded page content stream bytes and reports where image XObjects are
drawn.

Parsing is left to pypdf's `ContentStream`; only the operators needed to
place `Do` calls are interpreted:
    - q / Q: save / restore the graphics state (the CTM)
    - cm:    concatenate six numeric operands onto the CTM
    - Do:    paint the named XObject with the current CTM

Everything else (text, paths, colors, clipping, marked content, inline
images) is passed over.

Pixel-dimension hints
---------------------
Some producers emit a third `cm` per image of the form [w 0 0 h 0 0] whose
diagonal terms are the image's pixel dimensions. Composing it would inflate
the placement by orders of magnitude, so such a matrix is kept aside as a
dimension hint for the next `Do` instead of being composed. The test is a
heuristic (see GeometryPolicy.dimension_hint_threshold): a genuine scale of
the same shape, drawn at the page origin, is indistinguishable.

An operator with unusable operands is skipped and the walk continues. A
stream pypdf cannot parse at all yields no placements.
"""

import logging
from typing import Any, List, Optional

from pypdf.generic import ContentStream, DecodedStreamObject, NameObject

from pdf2regions.exceptions import UnparseableOperatorError
from pdf2regions.locator.data_types import AffineMatrix, ImagePlacement
from pdf2regions.locator.matrix_stack import MatrixStack
from pdf2regions.locator.resource_catalog import ResourceCatalog
from pdf2regions.locator.util.policy import DEFAULT_GEOMETRY_POLICY, GeometryPolicy

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_operations(data: bytes) -> List[tuple[List[Any], bytes]]:
    """(operands, operator) pairs of decoded content stream bytes."""
    stream = DecodedStreamObject()
    stream.set_data(data)
    return list(ContentStream(stream, None).operations)


class ContentStreamWalker:
    """
    Replays q / Q / cm / Do over one page's content stream.

    Owned by a single page walk: the matrix stack and hint state are created
    per `walk` call and dropped when it returns.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        page_index: int = 0,
        *,
        policy: GeometryPolicy = DEFAULT_GEOMETRY_POLICY,
    ) -> None:
        self.catalog = catalog
        self.page_index = page_index
        self.policy = policy
        self.skipped_operators = 0
        self._stack = MatrixStack()
        self._hint: Optional[tuple[float, float]] = None
        self._hint_stack: List[Optional[tuple[float, float]]] = []

    def walk(self, data: bytes | None) -> List[ImagePlacement]:
        """Return one placement per `Do` that names a cataloged image, in stream order."""
        self._stack = MatrixStack()
        self._hint = None
        self._hint_stack = []
        self.skipped_operators = 0

        placements: List[ImagePlacement] = []
        if not data:
            return placements

        try:
            operations = parse_operations(data)
        except Exception as e:
            logger.warning(
                "Failed to parse content stream of page %d: %s", self.page_index, e
            )
            return placements

        for operands, operator in operations:
            op = (
                operator.decode("utf-8", errors="ignore")
                if isinstance(operator, bytes)
                else operator
            )
            try:
                placement = self._apply(op, operands)
            except UnparseableOperatorError as e:
                self.skipped_operators += 1
                logger.debug("Skipping operator: %s", e)
                continue
            if placement is not None:
                placements.append(placement)

        if self._stack.depth:
            logger.debug(
                "Content stream ended with %d unrestored graphics state(s)",
                self._stack.depth,
            )
        return placements

    def _apply(self, operator: str, operands: List[Any]) -> Optional[ImagePlacement]:
        if operator == "q":
            self._stack.push()
            self._hint_stack.append(self._hint)
        elif operator == "Q":
            self._stack.pop()
            if self._hint_stack:
                self._hint = self._hint_stack.pop()
        elif operator == "cm":
            self._concatenate(operands)
        elif operator == "Do":
            return self._place(operands)
        return None

    def _concatenate(self, operands: List[Any]) -> None:
        if len(operands) != 6 or not all(_is_number(v) for v in operands):
            raise UnparseableOperatorError("cm", operands)
        matrix = AffineMatrix.from_values(operands)
        if matrix.is_dimension_hint(self.policy.dimension_hint_threshold):
            self._hint = (matrix.a, matrix.d)
            logger.debug(
                "Pixel dimension matrix %s kept as hint, not composed",
                matrix.as_tuple(),
            )
            return
        self._stack.concatenate(matrix)

    def _place(self, operands: List[Any]) -> Optional[ImagePlacement]:
        if len(operands) != 1 or not isinstance(operands[0], NameObject):
            raise UnparseableOperatorError("Do", operands)
        name = str(operands[0]).lstrip("/")
        if name not in self.catalog:
            logger.debug("Do [%s] does not name an image; ignored", name)
            return None
        placement = ImagePlacement(
            x_object_name=name,
            resolved_matrix=self._stack.current,
            page_index=self.page_index,
            dimension_hint=self._hint,
        )
        self._hint = None
        logger.debug(
            "Image [%s] placed with CTM %s", name, placement.resolved_matrix.as_tuple()
        )
        return placement


def walk_content_stream(
    data: bytes | None,
    catalog: ResourceCatalog,
    page_index: int = 0,
    *,
    policy: GeometryPolicy = DEFAULT_GEOMETRY_POLICY,
) -> List[ImagePlacement]:
    return ContentStreamWalker(catalog, page_index, policy=policy).walk(data)
