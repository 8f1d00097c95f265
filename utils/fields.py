import json
import logging
from typing import Any, List

from services.errors import MalformedSerializedField

logger = logging.getLogger(__name__)


def _decode_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError as exc:
            raise MalformedSerializedField(f"not valid JSON: {value!r}") from exc
        if not isinstance(decoded, list):
            raise MalformedSerializedField(f"expected a JSON list, got {type(decoded).__name__}")
        return [str(item) for item in decoded]
    raise MalformedSerializedField(f"unsupported type {type(value).__name__}")


def parse_json_list(value: Any) -> List[str]:
    """
    Decode a list field that the field app stores either as a real list or as a
    JSON-encoded string. Missing or undecodable values become an empty list.
    """
    if value is None or value == "":
        return []
    try:
        return _decode_list(value)
    except MalformedSerializedField as exc:
        logger.debug("Substituting empty list for malformed field: %s", exc)
        return []
