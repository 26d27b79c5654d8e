import json
import unittest

import pytest

from pdf2regions import deserialize_regions, serialize_regions
from pdf2regions.locator.data_types import (
    AffineMatrix,
    DocumentMetadata,
    DocumentRegions,
    ImagePlacement,
    MatchMethod,
    NormalizedRect,
    NormalizedRegion,
    PageRegions,
    SourceKind,
    TextSelection,
    TextSpan,
)
from pdf2regions.locator.serialization import _get_type_registry

tc = unittest.TestCase()
tc.maxDiff = None


def _document() -> DocumentRegions:
    return DocumentRegions(
        pages=[
            PageRegions(
                page_index=0,
                regions=[
                    NormalizedRegion(name="Im1", x=0.05, y=-0.1, width=1.0, height=1.0),
                    NormalizedRegion(
                        name="Draft",
                        x=0.75,
                        y=0.05,
                        width=0.2,
                        height=0.2,
                        confidence=0.9,
                        source_kind=SourceKind.ANNOTATION,
                    ),
                ],
                spans=[
                    TextSpan(
                        content="quarterly revenue",
                        rect=NormalizedRect(x=0.1, y=0.2, width=0.3, height=0.05),
                        match_quality=0.7,
                        match_method=MatchMethod.FUZZY,
                        matched_text="Quarterly revenue rose",
                    )
                ],
            ),
            PageRegions(page_index=1),
        ],
        metadata=DocumentMetadata(filename="report.pdf", file_extension=".pdf", total_pages=2),
    )


def test_serialized_output_is_json_ready() -> None:
    payload = serialize_regions(_document())

    tc.assertEqual("DocumentRegions", payload["_type"])
    region = payload["pages"][0]["regions"][1]
    tc.assertEqual("NormalizedRegion", region["_type"])
    tc.assertEqual("annotation", region["source_kind"])
    tc.assertEqual("fuzzy", payload["pages"][0]["spans"][0]["match_method"])
    json.loads(json.dumps(payload))


def test_deserialize_rebuilds_result_objects() -> None:
    document = _document()
    restored = deserialize_regions(json.loads(json.dumps(serialize_regions(document))))

    tc.assertEqual(document, restored)
    tc.assertIs(restored.pages[0].regions[1].source_kind, SourceKind.ANNOTATION)
    tc.assertIsInstance(restored.pages[0].spans[0].rect, NormalizedRect)
    tc.assertEqual(2, restored.get_metadata().total_pages)


def test_serialize_non_dataclass_value() -> None:
    tc.assertEqual({"value": [1, 2]}, serialize_regions((1, 2)))


def test_deserialize_rejects_untyped_input() -> None:
    with pytest.raises(ValueError):
        deserialize_regions([])
    with pytest.raises(ValueError):
        deserialize_regions({"pages": []})


def test_type_registry_is_built_once() -> None:
    registry = _get_type_registry()
    tc.assertIs(registry, _get_type_registry())
    tc.assertIn("NormalizedRegion", registry)
    tc.assertNotIn("PageModel", registry)


def test_tuples_and_optional_fields_are_restored() -> None:
    placement = ImagePlacement(
        x_object_name="Im1",
        resolved_matrix=AffineMatrix(2, 0, 0, 2, 10, 20),
        dimension_hint=(500.0, 400.0),
    )
    selection = TextSelection(rects=((0, 0, 10, 10), (10, 0, 20, 10)), text="hi")

    restored = deserialize_regions(json.loads(json.dumps(serialize_regions(placement))))
    tc.assertEqual(placement, restored)
    tc.assertIsInstance(restored.dimension_hint, tuple)

    restored = deserialize_regions(serialize_regions(selection))
    tc.assertEqual(selection, restored)
    tc.assertIsInstance(restored.rects[1], tuple)

    unhinted = ImagePlacement(x_object_name="Im2", resolved_matrix=AffineMatrix())
    tc.assertIsNone(deserialize_regions(serialize_regions(unhinted)).dimension_hint)
