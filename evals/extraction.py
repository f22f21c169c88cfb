"""Extraction of structured JSON fragments from free-form model text."""

import json
import logging
import re
from typing import Any, Optional, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from core.errors import ParseFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OPENERS = {
    "array": re.compile(r"\["),
    "object": re.compile(r"\{"),
}
_DECODER = json.JSONDecoder()


def find_json_fragment(text: str, kind: str = "array") -> Optional[Any]:
    """Return the first balanced JSON array or object embedded in ``text``.

    Each candidate opening bracket is handed to an incremental decoder, so
    trailing prose and brackets inside string literals do not confuse the
    boundary detection. Returns None when no candidate decodes.
    """
    pattern = _OPENERS[kind]
    for match in pattern.finditer(text):
        try:
            value, _ = _DECODER.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        return value
    return None


def extract_json(
    text: str,
    shape: Any,
    kind: str = "array",
    failure: Type[ParseFailure] = ParseFailure,
) -> Any:
    """Extract a JSON fragment from ``text`` and validate it against ``shape``.

    ``shape`` is any type pydantic can validate (a model, ``List[Model]``...).
    Raises ``failure`` when no fragment is found or it does not match.
    """
    value = find_json_fragment(text, kind)
    if value is None:
        logger.debug(f"No JSON {kind} in response: {text[:200]!r}")
        raise failure(f"No JSON {kind} found in model response")

    try:
        return TypeAdapter(shape).validate_python(value)
    except ValidationError as exc:
        raise failure(f"Model response did not match the expected shape: {exc}") from exc
