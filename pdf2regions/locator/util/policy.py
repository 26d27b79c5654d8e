from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Granularity(str, Enum):
    """How page text is cut into candidates for fuzzy matching."""

    WORD = "word"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class GeometryPolicy:
    """
    Tunables for turning image placements into normalized regions.

    The overflow tolerance and the fallback sizing ratios are empirical values
    that worked for the PDF producers seen so far, not values derived from the
    PDF reference.
    """

    # A region is clamped only when an edge leaves [0, 1] by more than this.
    overflow_tolerance: float = 0.1
    # Fallback rectangle caps, as fractions of the page box.
    fallback_max_width: float = 0.6
    fallback_max_height: float = 0.4
    fallback_top_margin: float = 0.1
    # Vertical band (below the top margin) the fallback is centered in.
    fallback_band_height: float = 0.8
    fallback_confidence: float = 0.4
    resolved_confidence: float = 1.0
    # A `cm` of the form [w 0 0 h 0 0] with w, h above this is a pixel hint.
    dimension_hint_threshold: float = 100.0
    # True: size = |a| * pixel width. False: the CTM maps the unit square.
    pixel_scaled_images: bool = True
    annotation_confidence: float = 0.9


@dataclass(frozen=True)
class TextSearchPolicy:
    """Thresholds and qualities of the exact -> partial -> fuzzy search."""

    exact_quality: float = 1.0
    partial_prefix_length: int = 50
    partial_quality: float = 0.8
    fuzzy_threshold: float = 0.6
    # Used when fuzzy matching is the last resort of a strict exact search.
    strict_fuzzy_threshold: float = 0.7
    granularity: Granularity = Granularity.SENTENCE


DEFAULT_GEOMETRY_POLICY = GeometryPolicy()
DEFAULT_TEXT_SEARCH_POLICY = TextSearchPolicy()
