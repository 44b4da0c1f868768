"""JSON helpers shared by the document store and the cache."""
import enum
import json
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Dict


def _default_handler(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        # Stored as a tagged string so amounts come back as Decimal, not float
        return {"__decimal__": str(obj)}
    elif isinstance(obj, enum.Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _object_hook(dct: Dict[str, Any]) -> Any:
    if "__decimal__" in dct:
        return Decimal(dct["__decimal__"])
    return dct


def dumps_json(value: Any) -> str:
    """Serialize Python object to JSON string with Decimal precision."""
    return json.dumps(value, default=_default_handler)


def loads_json(value: str) -> Any:
    """Deserialize JSON string to Python object, reconstructing Decimals."""
    return json.loads(value, object_hook=_object_hook)


def to_plain(value: Any) -> Any:
    """
    Convert a document into plain JSON types for HTTP responses.

    Decimals become strings so no precision is lost on the wire.
    """
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value
