import logging
from typing import List

from pdf2regions.locator.data_types import AffineMatrix

logger = logging.getLogger(__name__)


def identity() -> AffineMatrix:
    return AffineMatrix.identity()


def concatenate(m1: AffineMatrix, m2: AffineMatrix) -> AffineMatrix:
    """Compose two matrices; the result applies `m2` first, then `m1`."""
    return m1.concatenate(m2)


class MatrixStack:
    """
    Current transformation matrix (CTM) tracking across `q` / `Q`.

    `push` saves a snapshot of the current matrix, `pop` restores the last
    snapshot. An unbalanced `pop` leaves the matrix untouched.
    """

    def __init__(self, initial: AffineMatrix | None = None) -> None:
        self._current = initial or identity()
        self._saved: List[AffineMatrix] = []

    @property
    def current(self) -> AffineMatrix:
        return self._current

    @property
    def depth(self) -> int:
        return len(self._saved)

    def concatenate(self, new: AffineMatrix) -> AffineMatrix:
        # `new` acts in the coordinate space established so far
        self._current = concatenate(self._current, new)
        return self._current

    def push(self) -> None:
        self._saved.append(self._current)

    def pop(self) -> AffineMatrix:
        if not self._saved:
            logger.warning("Graphics state restore without matching save; ignored")
            return self._current
        self._current = self._saved.pop()
        return self._current

    def reset(self) -> None:
        self._current = identity()
        self._saved.clear()
