import logging
import unittest

from pdf2regions.locator.data_types import AffineMatrix
from pdf2regions.locator.matrix_stack import MatrixStack, concatenate, identity

tc = unittest.TestCase()

TRANSLATE = AffineMatrix(1, 0, 0, 1, 10, 20)
SCALE = AffineMatrix(2, 0, 0, 2, 0, 0)
ROTATE_90 = AffineMatrix(0, 1, -1, 0, 0, 0)
SHEAR = AffineMatrix(1, 0.5, 0.25, 1, -3, 7)


def _assert_point(actual: tuple[float, float], expected: tuple[float, float]) -> None:
    tc.assertAlmostEqual(actual[0], expected[0])
    tc.assertAlmostEqual(actual[1], expected[1])


def test_identity_maps_points_to_themselves() -> None:
    _assert_point(identity().apply(3.5, -2), (3.5, -2))


def test_concatenate_applies_second_matrix_first() -> None:
    # scale, then translate
    combined = concatenate(TRANSLATE, SCALE)
    tc.assertEqual((2, 0, 0, 2, 10, 20), combined.as_tuple())
    _assert_point(combined.apply(1, 1), (12, 22))

    # translate, then scale
    combined = concatenate(SCALE, TRANSLATE)
    tc.assertEqual((2, 0, 0, 2, 20, 40), combined.as_tuple())


def test_concatenate_with_rotation() -> None:
    combined = concatenate(TRANSLATE, ROTATE_90)
    tc.assertEqual((0, 1, -1, 0, 10, 20), combined.as_tuple())
    _assert_point(combined.apply(1, 0), (10, 21))
    _assert_point(combined.apply(0, 1), (9, 20))


def test_concatenate_matches_sequential_application() -> None:
    matrices = [TRANSLATE, SCALE, ROTATE_90, SHEAR]
    points = [(0, 0), (1, 0), (0, 1), (-4.5, 12.25)]
    for m1 in matrices:
        for m2 in matrices:
            combined = concatenate(m1, m2)
            for x, y in points:
                _assert_point(combined.apply(x, y), m1.apply(*m2.apply(x, y)))


def test_stack_concatenate_composes_onto_current() -> None:
    stack = MatrixStack()
    stack.concatenate(TRANSLATE)
    stack.concatenate(SCALE)
    tc.assertEqual((2, 0, 0, 2, 10, 20), stack.current.as_tuple())


def test_balanced_push_pop_restores_matrix() -> None:
    stack = MatrixStack()
    stack.concatenate(SHEAR)
    before = stack.current

    saved = []
    for matrix in [TRANSLATE, SCALE, ROTATE_90, SHEAR, SCALE]:
        stack.push()
        saved.append(stack.current)
        stack.concatenate(matrix)
    tc.assertEqual(5, stack.depth)

    while saved:
        tc.assertEqual(saved.pop(), stack.pop())
    tc.assertEqual(before, stack.current)
    tc.assertEqual(0, stack.depth)


def test_unbalanced_pop_is_a_logged_no_op(caplog) -> None:
    stack = MatrixStack()
    stack.concatenate(TRANSLATE)

    with caplog.at_level(logging.WARNING):
        result = stack.pop()

    tc.assertEqual(TRANSLATE.as_tuple(), result.as_tuple())
    tc.assertEqual(TRANSLATE.as_tuple(), stack.current.as_tuple())
    tc.assertIn("without matching save", caplog.text)


def test_reset_drops_saved_states() -> None:
    stack = MatrixStack()
    stack.push()
    stack.concatenate(SCALE)
    stack.reset()
    tc.assertEqual(0, stack.depth)
    tc.assertEqual(identity(), stack.current)


def test_from_values_requires_six_values() -> None:
    tc.assertEqual(SCALE, AffineMatrix.from_values([2, 0, 0, 2, 0, 0]))
    with tc.assertRaises(ValueError):
        AffineMatrix.from_values([1, 0, 0, 1])


def test_dimension_hint_detection() -> None:
    tc.assertTrue(AffineMatrix(500, 0, 0, 500, 0, 0).is_dimension_hint(100))
    tc.assertFalse(AffineMatrix(500, 0, 0, 80, 0, 0).is_dimension_hint(100))
    tc.assertFalse(AffineMatrix(500, 0, 0, 500, 10, 0).is_dimension_hint(100))
    tc.assertFalse(AffineMatrix(500, 1, 0, 500, 0, 0).is_dimension_hint(100))
