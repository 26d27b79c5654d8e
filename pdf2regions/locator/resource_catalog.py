"""
Resource Catalog
================

Classifies the named XObjects of a page as images or non-images.

Classification is first-match-wins:
    1. declared /Subtype is /Image
    2. the stream dictionary declares a positive /Width and /Height
    3. the declared /Filter is an image codec

An XObject that declares any other /Subtype (/Form, /PS) is never an image,
whatever its filter says: form streams are routinely Flate-compressed.

Unreadable entries are skipped; an unreadable XObject dictionary yields an
empty catalog. Nothing here raises to the caller.
"""

import logging
from typing import Any, Dict, Iterator, Mapping, Optional

from pdf2regions.exceptions import MalformedResourceError
from pdf2regions.locator.data_types import StreamDescriptor

logger = logging.getLogger(__name__)

# Compression filters that only occur on raster image streams (plus the
# general purpose Flate/LZW, which image streams use as well)
IMAGE_FILTERS: frozenset[str] = frozenset(
    {
        "DCTDecode",  # JPEG
        "JPXDecode",  # JPEG 2000
        "FlateDecode",  # PNG-style deflate
        "LZWDecode",  # LZW (legacy)
        "CCITTFaxDecode",  # TIFF Group 3/4 fax
        "JBIG2Decode",  # JBIG2 bi-level
    }
)


def _resolve(obj: Any) -> Any:
    """Follow an indirect reference, if `obj` is one."""
    get_object = getattr(obj, "get_object", None)
    if callable(get_object):
        return get_object()
    return obj


def _strip_name(value: Any) -> str:
    if value is None:
        return ""
    return str(value).lstrip("/")


def _field(stream_dict: Any, key: str) -> Any:
    value = stream_dict.get(f"/{key}")
    if value is None:
        value = stream_dict.get(key)
    return _resolve(value)


def _int_field(stream_dict: Any, key: str) -> int:
    value = _field(stream_dict, key)
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _filter_names(stream_dict: Any) -> list[str]:
    value = _field(stream_dict, "Filter")
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [_strip_name(_resolve(item)) for item in value]
    return [_strip_name(value)]


def describe_x_object(name: str, x_object: Any) -> Optional[StreamDescriptor]:
    """
    Build a descriptor for one XObject, or None when it is not an image.

    Raises:
        MalformedResourceError: the object is not a readable dictionary.
    """
    try:
        stream_dict = _resolve(x_object)
        if not hasattr(stream_dict, "get"):
            raise TypeError(f"unexpected object type {type(stream_dict).__name__}")
        subtype = _strip_name(_field(stream_dict, "Subtype"))
        width = _int_field(stream_dict, "Width")
        height = _int_field(stream_dict, "Height")
        filters = _filter_names(stream_dict)
    except Exception as exc:
        raise MalformedResourceError(name, cause=exc) from exc

    # the last filter in a decode chain is the one producing image samples
    filter_kind = filters[-1] if filters else ""

    if subtype == "Image":
        classified_by = "subtype"
    elif subtype:
        return None
    elif width > 0 and height > 0:
        classified_by = "dimensions"
    elif any(item in IMAGE_FILTERS for item in filters):
        classified_by = "filter"
    else:
        return None

    return StreamDescriptor(
        name=name,
        pixel_width=width,
        pixel_height=height,
        filter_kind=filter_kind,
        declared_subtype=subtype,
        classified_by=classified_by,
    )


def iter_image_descriptors(
    x_objects: Mapping[str, Any],
) -> Iterator[tuple[str, StreamDescriptor]]:
    """Yield (name, descriptor) for every image in an XObject dictionary."""
    for raw_name in list(x_objects.keys()):
        name = _strip_name(raw_name)
        try:
            descriptor = describe_x_object(name, x_objects[raw_name])
        except MalformedResourceError as e:
            logger.warning("Skipping unreadable XObject [%s]: %s", name, e.__cause__)
            continue
        if descriptor is None:
            logger.debug("XObject [%s] is not an image", name)
            continue
        yield name, descriptor


class ResourceCatalog:
    """Image XObjects of one page, keyed by resource name (without '/')."""

    def __init__(self, descriptors: Dict[str, StreamDescriptor] | None = None) -> None:
        self._descriptors: Dict[str, StreamDescriptor] = dict(descriptors or {})

    @classmethod
    def from_resources(cls, resources: Mapping[str, Any] | None) -> "ResourceCatalog":
        if resources is None:
            return cls()
        try:
            resources = _resolve(resources)
            x_objects = _resolve(resources.get("/XObject"))
            if x_objects is None:
                return cls()
            return cls(dict(iter_image_descriptors(x_objects)))
        except Exception as e:
            logger.warning("Unreadable resource dictionary, no images cataloged: %s", e)
            return cls()

    def lookup(self, name: str) -> Optional[StreamDescriptor]:
        return self._descriptors.get(_strip_name(name))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and _strip_name(name) in self._descriptors

    def __iter__(self) -> Iterator[StreamDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    def names(self) -> list[str]:
        return list(self._descriptors.keys())
