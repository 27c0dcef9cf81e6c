"""
Row values as returned by the Snowflake connector, normalized to a closed set
of kinds before JSON encoding.
"""

import base64
import datetime
import enum
from decimal import Decimal
from typing import Any, NamedTuple


class ScalarKind(enum.Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    TIMESTAMP = "timestamp"


class Scalar(NamedTuple):
    kind: ScalarKind
    value: Any

    @classmethod
    def from_driver(cls, raw: Any) -> "Scalar":
        """
        Classify a column value. Raises TypeError for unsupported types.

        Fractional ``Decimal`` values become FLOAT and keep only double
        precision (about 15 significant digits); wider NUMBER(38, s) values
        are rounded. Integral decimals become exact INTEGER values.
        """
        if raw is None:
            return cls(ScalarKind.NULL, None)
        # bool before int: bool is an int subclass
        if isinstance(raw, bool):
            return cls(ScalarKind.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(ScalarKind.INTEGER, raw)
        if isinstance(raw, float):
            return cls(ScalarKind.FLOAT, raw)
        if isinstance(raw, Decimal):
            # NUMBER(p, s) with s > 0 arrives as Decimal
            if raw.is_finite() and raw == raw.to_integral_value():
                return cls(ScalarKind.INTEGER, int(raw))
            return cls(ScalarKind.FLOAT, float(raw))
        if isinstance(raw, str):
            return cls(ScalarKind.TEXT, raw)
        if isinstance(raw, (bytes, bytearray)):
            return cls(ScalarKind.TEXT, base64.b64encode(raw).decode("ascii"))
        if isinstance(raw, (datetime.datetime, datetime.date, datetime.time)):
            return cls(ScalarKind.TIMESTAMP, raw.isoformat())
        raise TypeError(f"unsupported column value of type {type(raw).__name__}")

    def to_json(self) -> Any:
        return self.value
