import logging
import unittest
from unittest.mock import MagicMock

from pdf2regions.locator.data_types import (
    AnnotationRecord,
    DocumentMetadata,
    MatchMethod,
    SourceKind,
    TextSelection,
)
from pdf2regions.locator.pipeline import ContentExtractionPipeline
from pdf2regions.locator.util.policy import GeometryPolicy

tc = unittest.TestCase()


def _image(width: int = 100, height: int = 100) -> dict:
    return {"/Subtype": "/Image", "/Width": width, "/Height": height}


class _FakePage:
    def __init__(
        self,
        x_objects: dict | None = None,
        content: bytes = b"",
        text: str = "",
        hits: dict | None = None,
        annotations: list | None = None,
        media_box=(0, 0, 200, 200),
    ) -> None:
        self.x_objects = x_objects or {}
        self.content = content
        self.text = text
        self.hits = hits or {}
        self.annots = annotations or []
        self.box = media_box

    def resources(self):
        return {"/XObject": self.x_objects}

    def content_bytes(self) -> bytes:
        return self.content

    def media_box(self):
        return self.box

    def search(self, needle: str):
        return self.hits.get(" ".join(needle.casefold().split()), [])

    def plain_text(self) -> str:
        return self.text

    def annotations(self):
        return self.annots


def _sample_page() -> _FakePage:
    return _FakePage(
        x_objects={
            "/Im1": _image(),
            "/Im2": _image(400, 100),
            "/Fm1": {"/Subtype": "/Form", "/Filter": "/FlateDecode"},
        },
        content=b"q 2 0 0 2 10 20 cm /Im1 Do Q q 0.5 0 0 0.5 0 0 cm /Fm1 Do Q",
        text="A caption under the chart. Revenue grew sharply this quarter.",
        hits={
            "a caption": [TextSelection(rects=((10, 30, 60, 40),), text="A caption")],
            "revenue grew sharply this quarter": [
                TextSelection(rects=((10, 10, 150, 20),), text="Revenue grew sharply this quarter")
            ],
        },
        annotations=[
            AnnotationRecord(subtype="Stamp", rect=(150, 150, 190, 190), name="Draft"),
            AnnotationRecord(subtype="Link", rect=(0, 0, 10, 10)),
        ],
    )


def test_process_page_assembles_regions_and_spans() -> None:
    result = ContentExtractionPipeline().process_page(
        _sample_page(), 5, ["a caption", "revenue grew this quarter", "not here"]
    )

    tc.assertEqual(5, result.page_index)
    tc.assertEqual(["Im1", "Im2"], [r.name for r in result.regions])
    placed, never_placed = result.regions
    tc.assertFalse(placed.estimated)
    tc.assertAlmostEqual(0.05, placed.x)
    tc.assertAlmostEqual(-0.1, placed.y)
    tc.assertTrue(never_placed.estimated)
    tc.assertAlmostEqual(0.4, never_placed.confidence)
    tc.assertTrue(all(r.page_index == 5 for r in result.regions))

    tc.assertEqual(2, len(result.spans))
    exact, fuzzy = result.spans
    tc.assertEqual(MatchMethod.EXACT, exact.match_method)
    tc.assertEqual(MatchMethod.FUZZY, fuzzy.match_method)
    tc.assertAlmostEqual(4 / 5, fuzzy.match_quality)
    tc.assertEqual("revenue grew this quarter", fuzzy.content)


def test_annotations_are_opt_in() -> None:
    without = ContentExtractionPipeline().process_page(_sample_page())
    tc.assertEqual([], [r for r in without.regions if r.source_kind == SourceKind.ANNOTATION])

    with_annotations = ContentExtractionPipeline(include_annotations=True).process_page(
        _sample_page()
    )
    annotations = [
        r for r in with_annotations.regions if r.source_kind == SourceKind.ANNOTATION
    ]
    tc.assertEqual(["Draft"], [r.name for r in annotations])
    tc.assertEqual(2, len(with_annotations.image_regions()))


def test_running_twice_gives_identical_output() -> None:
    pipeline = ContentExtractionPipeline()
    targets = ["a caption", "revenue grew this quarter"]

    first = pipeline.process_page(_sample_page(), 0, targets)
    second = pipeline.process_page(_sample_page(), 0, targets)

    tc.assertEqual(first, second)
    tc.assertEqual(first.to_dict(), second.to_dict())


def test_page_without_images_or_targets_is_empty() -> None:
    result = ContentExtractionPipeline().process_page(_FakePage(content=b"BT ET"), 0)
    tc.assertTrue(result.is_empty)


def test_failing_page_accessors_are_absorbed(caplog) -> None:
    page = MagicMock()
    page.resources.side_effect = RuntimeError("broken resources")
    page.media_box.side_effect = RuntimeError("broken box")
    page.plain_text.return_value = ""
    page.search.return_value = []

    with caplog.at_level(logging.WARNING):
        result = ContentExtractionPipeline().process_page(page, 1, ["anything"])

    tc.assertTrue(result.is_empty)
    tc.assertIn("broken resources", caplog.text)
    page.content_bytes.assert_not_called()


def test_unreadable_content_stream_falls_back() -> None:
    page = _FakePage(x_objects={"/Im1": _image()})
    page.content_bytes = MagicMock(side_effect=RuntimeError("bad stream"))

    result = ContentExtractionPipeline().process_page(page)

    tc.assertEqual(1, len(result.regions))
    tc.assertTrue(result.regions[0].estimated)


def test_malformed_media_box_falls_back(caplog) -> None:
    page = _FakePage(
        x_objects={"/Im1": _image()},
        content=b"q 2 0 0 2 10 20 cm /Im1 Do Q",
        media_box=(0, 0, 200),
    )

    with caplog.at_level(logging.WARNING):
        result = ContentExtractionPipeline().process_page(page, 4)

    tc.assertEqual(1, len(result.regions))
    tc.assertTrue(result.regions[0].estimated)
    tc.assertIn("Page 4: unusable media box", caplog.text)


def test_geometry_policy_is_applied() -> None:
    policy = GeometryPolicy(fallback_confidence=0.25)
    page = _FakePage(x_objects={"/Im1": _image()})
    result = ContentExtractionPipeline(geometry_policy=policy).process_page(page)
    tc.assertEqual(0.25, result.regions[0].confidence)


def test_process_document_and_best_span() -> None:
    target = "revenue grew sharply this quarter"
    pages = [
        _FakePage(text="Revenue grew sharply. Costs were flat.", hits={
            "revenue grew sharply": [TextSelection(rects=((0, 0, 10, 10),))]
        }),
        _sample_page(),
        _sample_page(),
    ]
    metadata = DocumentMetadata(filename="report.pdf")

    result = ContentExtractionPipeline().process_document(pages, [target], metadata)

    tc.assertEqual(3, len(result.pages))
    tc.assertEqual([0, 1, 2], [page.page_index for page in result.iterator()])
    tc.assertEqual(3, result.get_metadata().total_pages)
    tc.assertEqual("report.pdf", result.get_metadata().filename)
    tc.assertEqual(4, len(result.all_regions()))

    best = result.best_span(target)
    tc.assertEqual(1, best.page_index)
    tc.assertEqual(MatchMethod.EXACT, best.match_method)
    tc.assertIsNone(result.best_span("unknown"))


def test_strict_text_search() -> None:
    pipeline = ContentExtractionPipeline(strict_text_search=True)
    result = pipeline.process_page(_sample_page(), 0, ["revenue grew this quarter"])
    # 4 / 5 passes the strict threshold as well
    tc.assertEqual(1, len(result.spans))

    result = pipeline.process_page(_sample_page(), 0, ["revenue grew quarter"])
    # 3 / 5 does not
    tc.assertEqual([], result.spans)
