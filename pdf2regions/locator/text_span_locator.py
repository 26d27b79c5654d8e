"""
Text Span Locator
=================

Finds where a target string sits on a page, delegating substring search to
the page model and scoring the result.

Search tiers, first hit wins:
    1. exact:   the whole target, case-insensitive          quality 1.0
    2. partial: the first 50 characters of a long target    quality 0.8
    3. fuzzy:   token-set Jaccard similarity against page   quality = similarity
                chunks (word / sentence / paragraph)

The standalone fuzzy entry point accepts similarities of 0.6 and above. A
strict search skips the partial tier and only accepts fuzzy similarities of
0.7 and above.

Fuzzy hits are positioned by searching for the winning chunk's text; when the
chunk cannot be found verbatim the next best candidate is tried. A hit made of
several selection fragments gets the union of their rectangles.
"""

import logging
from typing import List, Optional

from pdf2regions.exceptions import NoTextMatchError
from pdf2regions.locator.data_types import (
    MatchMethod,
    NormalizedRect,
    PageModel,
    TextSelection,
    TextSpan,
)
from pdf2regions.locator.geometry_resolver import GeometryResolver
from pdf2regions.locator.util.policy import (
    DEFAULT_TEXT_SEARCH_POLICY,
    TextSearchPolicy,
)
from pdf2regions.locator.util.text_tokens import (
    chunks,
    jaccard,
    normalize_whitespace,
    tokens,
)

logger = logging.getLogger(__name__)


class TextSpanLocator:
    def __init__(
        self,
        page: PageModel,
        page_index: int = 0,
        *,
        resolver: GeometryResolver | None = None,
        policy: TextSearchPolicy = DEFAULT_TEXT_SEARCH_POLICY,
    ) -> None:
        self.page = page
        self.page_index = page_index
        self.resolver = resolver or GeometryResolver(page.media_box())
        self.policy = policy
        self._chunks: Optional[List[str]] = None

    # -------------------------------------------------------------------------
    # public entry points
    # -------------------------------------------------------------------------

    def find(self, target: str, *, strict: bool = False) -> TextSpan:
        """
        Locate `target` on the page.

        Raises:
            NoTextMatchError: no tier produced a positioned match.
        """
        needle = normalize_whitespace(target or "")
        span = None
        if needle:
            span = self.exact(target)
            if span is None and not strict:
                span = self.partial(target)
            if span is None:
                threshold = (
                    self.policy.strict_fuzzy_threshold
                    if strict
                    else self.policy.fuzzy_threshold
                )
                span = self.fuzzy(target, threshold)
        if span is None:
            raise NoTextMatchError(target, self.page_index)
        return span

    def locate(self, target: str, *, strict: bool = False) -> Optional[TextSpan]:
        try:
            return self.find(target, strict=strict)
        except NoTextMatchError as e:
            logger.warning("%s", e)
            return None

    def locate_fuzzy(self, target: str) -> Optional[TextSpan]:
        """Fuzzy tier only, at the standalone threshold."""
        span = self.fuzzy(target, self.policy.fuzzy_threshold)
        if span is None:
            logger.warning("%s", NoTextMatchError(target, self.page_index))
        return span

    # -------------------------------------------------------------------------
    # tiers
    # -------------------------------------------------------------------------

    def exact(self, target: str) -> Optional[TextSpan]:
        needle = normalize_whitespace(target)
        if not needle:
            return None
        span = self._span_for(
            target, needle, self.policy.exact_quality, MatchMethod.EXACT
        )
        logger.debug("Exact search for '%s': %s", needle[:50], "hit" if span else "miss")
        return span

    def partial(self, target: str) -> Optional[TextSpan]:
        needle = normalize_whitespace(target)
        prefix_length = self.policy.partial_prefix_length
        if len(needle) <= prefix_length:
            return None
        prefix = needle[:prefix_length].strip()
        span = self._span_for(
            target, prefix, self.policy.partial_quality, MatchMethod.PARTIAL
        )
        logger.debug("Partial search for '%s': %s", prefix, "hit" if span else "miss")
        return span

    def fuzzy(self, target: str, threshold: float) -> Optional[TextSpan]:
        target_tokens = tokens(target or "")
        if not target_tokens:
            return None

        candidates = []
        for index, chunk in enumerate(self._page_chunks()):
            score = jaccard(target_tokens, tokens(chunk))
            if score > threshold:
                candidates.append((score, index, chunk))
        # best first; equal scores keep page order
        candidates.sort(key=lambda item: (-item[0], item[1]))

        for score, _, chunk in candidates:
            span = self._span_for(target, chunk, score, MatchMethod.FUZZY)
            if span is not None:
                logger.debug(
                    "Fuzzy match for '%s' scored %.3f on '%s'", target[:50], score, chunk[:50]
                )
                return span
            logger.debug("Fuzzy candidate '%s' could not be positioned", chunk[:50])
        return None

    # -------------------------------------------------------------------------
    # helpers
    # -------------------------------------------------------------------------

    def _page_chunks(self) -> List[str]:
        if self._chunks is None:
            try:
                text = self.page.plain_text() or ""
            except Exception as e:
                logger.warning("Page %d text unavailable: %s", self.page_index, e)
                text = ""
            self._chunks = chunks(text, self.policy.granularity)
        return self._chunks

    def _search(self, needle: str) -> List[TextSelection]:
        try:
            return list(self.page.search(needle))
        except Exception as e:
            logger.warning("Text search failed on page %d: %s", self.page_index, e)
            return []

    def _span_for(
        self, target: str, needle: str, quality: float, method: MatchMethod
    ) -> Optional[TextSpan]:
        """Span for the first search hit of `needle` that has a usable rectangle."""
        for selection in self._search(needle):
            rect = self.selection_rect(selection)
            if rect is None:
                continue
            return TextSpan(
                content=target,
                page_index=self.page_index,
                rect=rect,
                match_quality=quality,
                match_method=method,
                matched_text=selection.text or needle,
            )
        return None

    def selection_rect(self, selection: TextSelection) -> Optional[NormalizedRect]:
        """Union of a selection's fragment rectangles, normalized to the page."""
        if not selection.rects or not self.resolver.has_page_size:
            return None
        left = min(min(r[0], r[2]) for r in selection.rects)
        bottom = min(min(r[1], r[3]) for r in selection.rects)
        right = max(max(r[0], r[2]) for r in selection.rects)
        top = max(max(r[1], r[3]) for r in selection.rects)
        rect, _ = self.resolver.normalize_pdf_rect(left, bottom, right - left, top - bottom)
        return rect
