"""Explicit schema descriptors for frame materialization.

A :class:`Schema` is an ordered list of ``(name, type)`` fields that fixes the
column names and order of a frame. Schemas are declared explicitly or derived
from statically declared record types (dataclasses and ``NamedTuple``
classes), from a Spark ``StructType``, or from an Arrow schema.

Example:
    >>> from framebridge.schema import ColumnType, Field, Schema
    >>>
    >>> schema = Schema([Field("x", ColumnType.DOUBLE), Field("y", ColumnType.BOOLEAN)])
    >>> schema.names
    ('x', 'y')
    >>>
    >>> @dataclass
    ... class Point:
    ...     x: float
    ...     y: bool
    >>> Schema.of(Point) == schema
    True
"""

from __future__ import annotations

import dataclasses
import decimal
import logging
import typing
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Sequence

from framebridge.errors import SchemaError, UnsupportedColumnTypeError

if TYPE_CHECKING:
    import pyarrow as pa
    from pyspark.sql.types import StructType

logger = logging.getLogger(__name__)


# =============================================================================
# Column Types
# =============================================================================


class ColumnType(str, Enum):
    """Declared source type of a column."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    STRING = "string"
    ANY = "any"  # Undeclared; coerced at runtime

    @property
    def is_numeric(self) -> bool:
        """Check if values of this type map onto doubles."""
        return self in _NUMERIC_TYPES


_NUMERIC_TYPES = frozenset(
    {
        ColumnType.BOOLEAN,
        ColumnType.INTEGER,
        ColumnType.FLOAT,
        ColumnType.DOUBLE,
        ColumnType.DECIMAL,
    }
)

_PYTHON_TYPE_MAP: dict[Any, ColumnType] = {
    bool: ColumnType.BOOLEAN,
    int: ColumnType.INTEGER,
    float: ColumnType.DOUBLE,
    decimal.Decimal: ColumnType.DECIMAL,
    str: ColumnType.STRING,
}


def _python_type_to_column(annotation: Any) -> ColumnType:
    """Map a field annotation to a column type.

    ``Optional[X]`` maps like ``X``; unknown annotations map to ``ANY``.
    """
    if annotation in _PYTHON_TYPE_MAP:
        return _PYTHON_TYPE_MAP[annotation]

    args = [a for a in typing.get_args(annotation) if a is not type(None)]
    if len(args) == 1:
        return _python_type_to_column(args[0])

    return ColumnType.ANY


def _spark_type_to_column(name: str, spark_type: Any) -> ColumnType:
    """Map a Spark SQL data type to a column type.

    Raises:
        UnsupportedColumnTypeError: If the type has no numeric mapping.
    """
    from pyspark.sql.types import (
        BooleanType,
        ByteType,
        DecimalType,
        DoubleType,
        FloatType,
        IntegerType,
        LongType,
        ShortType,
    )

    type_map = {
        BooleanType: ColumnType.BOOLEAN,
        ByteType: ColumnType.INTEGER,
        ShortType: ColumnType.INTEGER,
        IntegerType: ColumnType.INTEGER,
        LongType: ColumnType.INTEGER,
        FloatType: ColumnType.FLOAT,
        DoubleType: ColumnType.DOUBLE,
        DecimalType: ColumnType.DECIMAL,
    }

    spark_type_class = type(spark_type)
    if spark_type_class in type_map:
        return type_map[spark_type_class]

    raise UnsupportedColumnTypeError(name, spark_type)


def _arrow_type_to_column(name: str, arrow_type: "pa.DataType") -> ColumnType:
    """Map an Arrow data type to a column type.

    Raises:
        UnsupportedColumnTypeError: If the type has no numeric mapping.
    """
    import pyarrow as pa

    if pa.types.is_boolean(arrow_type):
        return ColumnType.BOOLEAN
    if pa.types.is_integer(arrow_type):
        return ColumnType.INTEGER
    if pa.types.is_float64(arrow_type):
        return ColumnType.DOUBLE
    if pa.types.is_floating(arrow_type):
        return ColumnType.FLOAT
    if pa.types.is_decimal(arrow_type):
        return ColumnType.DECIMAL

    raise UnsupportedColumnTypeError(name, arrow_type)


# =============================================================================
# Schema
# =============================================================================


@dataclass(frozen=True)
class Field:
    """A single named column of a schema.

    Attributes:
        name: Column name.
        dtype: Declared source type.
    """

    name: str
    dtype: ColumnType = ColumnType.ANY


class Schema:
    """Ordered, immutable list of column fields.

    Column count and order are fixed for the lifetime of one materialization
    and must match every partition's output.
    """

    def __init__(self, fields: Iterable[Field | str | tuple[str, ColumnType]]) -> None:
        """Initialize schema.

        Args:
            fields: Fields, bare names, or ``(name, type)`` pairs.

        Raises:
            SchemaError: If the schema is empty or names are duplicated.
        """
        normalized: list[Field] = []
        for item in fields:
            if isinstance(item, Field):
                normalized.append(item)
            elif isinstance(item, str):
                normalized.append(Field(item))
            else:
                name, dtype = item
                normalized.append(Field(name, ColumnType(dtype)))

        if not normalized:
            raise SchemaError("Schema must declare at least one column")

        seen: set[str] = set()
        for f in normalized:
            if f.name in seen:
                raise SchemaError(f"Duplicate column name: {f.name}", f.name)
            seen.add(f.name)

        self._fields = tuple(normalized)

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def of(cls, record_type: type) -> "Schema":
        """Derive a schema from a dataclass or ``NamedTuple`` type.

        Field order is declaration order.

        Raises:
            SchemaError: If the type declares no fields.
        """
        try:
            hints = typing.get_type_hints(record_type)
        except (NameError, TypeError) as e:
            logger.debug(f"Unresolved annotations on {record_type!r}: {e}")
            hints = {}

        if dataclasses.is_dataclass(record_type):
            names = [f.name for f in dataclasses.fields(record_type)]
        elif isinstance(record_type, type) and issubclass(record_type, tuple) and hasattr(
            record_type, "_fields"
        ):
            names = list(record_type._fields)
        else:
            raise SchemaError(
                f"Cannot derive a schema from {record_type!r}; "
                "declare a dataclass, a NamedTuple, or pass a Schema"
            )

        return cls(Field(n, _python_type_to_column(hints.get(n))) for n in names)

    @classmethod
    def positional(cls, count: int, dtype: ColumnType = ColumnType.ANY) -> "Schema":
        """Create a schema with default names ``C1..Cn``."""
        return cls(Field(f"C{i + 1}", dtype) for i in range(count))

    @classmethod
    def from_spark(cls, struct: "StructType") -> "Schema":
        """Derive a schema from a Spark ``StructType``.

        Raises:
            UnsupportedColumnTypeError: If any column has no numeric mapping.
        """
        return cls(
            Field(f.name, _spark_type_to_column(f.name, f.dataType)) for f in struct.fields
        )

    @classmethod
    def from_arrow(cls, arrow_schema: "pa.Schema") -> "Schema":
        """Derive a schema from an Arrow schema.

        Raises:
            UnsupportedColumnTypeError: If any column has no numeric mapping.
        """
        return cls(
            Field(f.name, _arrow_type_to_column(f.name, f.type)) for f in arrow_schema
        )

    @classmethod
    def coerce(cls, value: "Schema | type | Sequence[Any]") -> "Schema":
        """Normalize a schema-like argument into a Schema."""
        if isinstance(value, Schema):
            return value
        if isinstance(value, type):
            return cls.of(value)
        return cls(value)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def fields(self) -> tuple[Field, ...]:
        return self._fields

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self._fields)

    @property
    def dtypes(self) -> tuple[ColumnType, ...]:
        return tuple(f.dtype for f in self._fields)

    def index(self, name: str) -> int:
        """Get the position of a column.

        Raises:
            SchemaError: If the column does not exist.
        """
        for i, f in enumerate(self._fields):
            if f.name == name:
                return i
        raise SchemaError(f"Unknown column: {name}", name)

    def require_numeric(self) -> None:
        """Check that every declared type maps onto doubles.

        Raises:
            UnsupportedColumnTypeError: On the first non-numeric column.
        """
        for f in self._fields:
            if not f.dtype.is_numeric:
                raise UnsupportedColumnTypeError(f.name, f.dtype)

    def extract(self, record: Any) -> tuple[Any, ...]:
        """Get the field values of a record in schema order.

        Tuples (including ``NamedTuple`` and Spark ``Row``) are read by
        position, mappings by key, other objects by attribute. Missing
        fields read as ``None``.
        """
        width = len(self._fields)

        if isinstance(record, tuple):
            if len(record) >= width:
                return record[:width]
            return record + (None,) * (width - len(record))

        if isinstance(record, Mapping):
            return tuple(record.get(f.name) for f in self._fields)

        return tuple(getattr(record, f.name, None) for f in self._fields)

    def to_arrow(self) -> "pa.Schema":
        """Get the Arrow schema of frames built from this schema."""
        import pyarrow as pa

        return pa.schema([pa.field(f.name, pa.float64()) for f in self._fields])

    # -------------------------------------------------------------------------
    # Dunder Methods
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields)

    def __getitem__(self, position: int) -> Field:
        return self._fields[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self._fields == other._fields

    def __hash__(self) -> int:
        return hash(self._fields)

    def __repr__(self) -> str:
        cols = ", ".join(f"{f.name}: {f.dtype.value}" for f in self._fields)
        return f"Schema({cols})"
