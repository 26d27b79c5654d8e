class RegionLocatorError(Exception):
    """Base class for all errors raised by the region locator."""

    def __init__(self, message: str, *, cause: Exception = None):
        super().__init__(message)
        # Use exception chaining if cause is provided
        self.__cause__ = cause


class RegionExtractionFailedError(RegionLocatorError):
    """Raised when the PDF container cannot be opened at all."""

    def __init__(self, message: str = None, *, path: str = None, cause: Exception = None):
        self.path = path
        if message is None:
            message = f"Failed to read PDF: {path}" if path else "Failed to read PDF"
        super().__init__(message, cause=cause)


class MalformedResourceError(RegionLocatorError):
    """Raised when a page resource entry cannot be read."""

    def __init__(self, name: str, message: str = None, *, cause: Exception = None):
        self.name = name
        if message is None:
            message = f"Malformed resource entry: {name}"
        super().__init__(message, cause=cause)


class UnparseableOperatorError(RegionLocatorError):
    """Raised when a content stream operator carries unusable operands."""

    def __init__(self, operator: str, operands: list = None, message: str = None):
        self.operator = operator
        self.operands = list(operands or [])
        if message is None:
            message = (
                f"Cannot interpret operator [{operator}] "
                f"with {len(self.operands)} operand(s)"
            )
        super().__init__(message)


class UnresolvedPlacementError(RegionLocatorError):
    """Raised when an image placement cannot be turned into geometry."""

    def __init__(self, name: str, message: str = None):
        self.name = name
        if message is None:
            message = f"Cannot resolve placement for image: {name}"
        super().__init__(message)


class NoTextMatchError(RegionLocatorError):
    """Raised when no search tier locates a target string on a page."""

    def __init__(self, target: str, page_index: int = None):
        self.target = target
        self.page_index = page_index
        preview = target[:50]
        message = f"No match for target text: '{preview}'"
        if page_index is not None:
            message += f" on page {page_index}"
        super().__init__(message)
