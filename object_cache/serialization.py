"""
Serialization utilities for values stored in the cache table.

The ``data`` column is text. Plain strings are stored verbatim so that rows
stay readable and counters written by incr/decr stay plain numbers. Every
other value is pickled, base64 encoded and tagged with a marker so that it can
be told apart from a plain string when the row is loaded again.
"""

import base64
import binascii
import logging
import pickle
from typing import Any

logger = logging.getLogger(__name__)

# Marker for pickled payloads: pickle:{base64}
SERIALIZED_MARKER = "pickle:"


def serialize(obj: Any) -> str:
    """
    Serialize any picklable value into a tagged text payload.

    Args:
        obj: Object to serialize

    Returns:
        Text of the form ``pickle:{base64}``

    Raises:
        ValueError: If the object cannot be pickled

    Example:
        >>> payload = serialize({"color": "blue"})
        >>> payload.startswith("pickle:")
        True
    """
    try:
        raw = pickle.dumps(obj, protocol=pickle.HIGHEST_PROTOCOL)
    except Exception as e:
        logger.error(f"Serialization error for {type(obj).__name__}: {e}", exc_info=True)
        raise ValueError(f"Failed to serialize object of type {type(obj).__name__}: {e}") from e

    return SERIALIZED_MARKER + base64.b64encode(raw).decode("ascii")


def deserialize(data: str) -> Any:
    """
    Deserialize a tagged text payload produced by :func:`serialize`.

    Args:
        data: Text of the form ``pickle:{base64}``

    Returns:
        The original Python object

    Raises:
        ValueError: If the payload is not tagged or cannot be decoded
    """
    if not is_serialized(data):
        raise ValueError("Failed to deserialize data: missing serialization marker")

    try:
        raw = base64.b64decode(data[len(SERIALIZED_MARKER):], validate=True)
        return pickle.loads(raw)
    except (binascii.Error, ValueError) as e:
        logger.error(f"Base64 decoding error: {e}", exc_info=True)
        raise ValueError("Failed to deserialize data: corrupted payload encoding") from e
    except pickle.UnpicklingError as e:
        logger.error(f"Unpickling error: {e}", exc_info=True)
        raise ValueError("Failed to deserialize data: corrupted pickle data") from e
    except AttributeError as e:
        logger.error(f"Attribute error during deserialization: {e}", exc_info=True)
        raise ValueError(
            "Failed to deserialize data: class structure may have changed"
        ) from e
    except Exception as e:
        logger.error(f"Deserialization error: {e}", exc_info=True)
        raise ValueError(f"Failed to deserialize data: {e}") from e


def is_serialized(data: Any) -> bool:
    """Check whether a value is a tagged serialized payload."""
    return isinstance(data, str) and data.startswith(SERIALIZED_MARKER)


def maybe_serialize(data: Any) -> str:
    """
    Prepare a value for the ``data`` column.

    Strings are stored as they are unless they already look like a serialized
    payload, in which case they are serialized again so that loading returns
    the original string rather than the object it resembles.

    Args:
        data: Value handed to the cache

    Returns:
        Text suitable for storage

    Raises:
        ValueError: If a non-string value cannot be pickled

    Example:
        >>> maybe_serialize("blue")
        'blue'
        >>> maybe_serialize(5).startswith("pickle:")
        True
    """
    if isinstance(data, str) and not is_serialized(data):
        return data
    return serialize(data)


def maybe_unserialize(data: Any) -> Any:
    """
    Reverse :func:`maybe_serialize` for a value loaded from the ``data`` column.

    Untagged values (plain strings, raw counters) are returned unchanged.

    Args:
        data: Stored text

    Returns:
        The deserialized object, or the input when it is not a payload

    Raises:
        ValueError: If a tagged payload is corrupted
    """
    if is_serialized(data):
        return deserialize(data)
    return data


def payload_size(data: str) -> int:
    """
    Byte length of a stored payload.

    Args:
        data: Text produced by :func:`maybe_serialize`

    Returns:
        Number of bytes in the UTF-8 encoding of the payload
    """
    return len(str(data).encode("utf-8"))


def safe_size(obj: Any) -> int:
    """
    Approximate serialized size of an object, never raising.

    Used for reporting only. Objects that cannot be pickled count as zero.

    Args:
        obj: Object to measure

    Returns:
        Length of the pickled object in bytes, or 0 on failure
    """
    try:
        return len(pickle.dumps(obj, protocol=pickle.HIGHEST_PROTOCOL))
    except Exception as e:
        logger.warning(f"Size computation failed for {type(obj).__name__}: {e}")
        return 0
