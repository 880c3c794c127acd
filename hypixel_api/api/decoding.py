"""Response decoding: turn a requested shape into a `decode(bytes)` callable."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter

Decoder = Callable[[bytes], Any]


@functools.lru_cache(maxsize=128)
def _adapter_for(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


def make_decoder(response_type: Any = dict, decoder: Decoder | None = None) -> Decoder:
    """
    Build the decode capability for one request.

    Args:
        response_type: Anything pydantic can validate JSON into (models,
            dataclasses, TypedDicts, builtin generics such as dict[str, Any])
        decoder: Explicit decode function; takes precedence over response_type

    Returns:
        Callable taking the raw body and returning the decoded payload. It
        raises pydantic.ValidationError or ValueError on mismatch.
    """
    if decoder is not None:
        return decoder

    try:
        adapter = _adapter_for(response_type)
    except TypeError:
        # Unhashable type expressions cannot be cached
        adapter = TypeAdapter(response_type)
    return adapter.validate_json
