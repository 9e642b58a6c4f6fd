import logging
import re
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

# Marker for types without a PostgreSQL counterpart; meant to break the DDL loudly.
UNKNOWN_TYPE = "???"

CURRENT_TIMESTAMP_DEFAULT = "now()::timestamp"
EMPTY_LOB_DEFAULT = "''"


class TypeCategory(Enum):
    CHAR = "char"
    VARCHAR = "varchar"
    NUMBER = "number"
    DATE = "date"
    TIMESTAMP = "timestamp"
    TIMESTAMP_TZ = "timestamp_tz"
    ROWID = "rowid"
    TEXT = "text"
    BINARY = "binary"
    BFILE = "bfile"
    INTEGER = "integer"
    FLOAT = "float"
    DOUBLE = "double"
    XML = "xml"
    UNKNOWN = "unknown"


_CATEGORY_BY_TYPE = {
    "CHAR": TypeCategory.CHAR,
    "NCHAR": TypeCategory.CHAR,
    "VARCHAR2": TypeCategory.VARCHAR,
    "VARCHAR": TypeCategory.VARCHAR,
    "NVARCHAR2": TypeCategory.VARCHAR,
    "NVARCHAR": TypeCategory.VARCHAR,
    "NUMBER": TypeCategory.NUMBER,
    "DATE": TypeCategory.DATE,
    "TIMESTAMP": TypeCategory.TIMESTAMP,
    "ROWID": TypeCategory.ROWID,
    "LONG": TypeCategory.TEXT,
    "CLOB": TypeCategory.TEXT,
    "NCLOB": TypeCategory.TEXT,
    "BLOB": TypeCategory.BINARY,
    "RAW": TypeCategory.BINARY,
    "LONG RAW": TypeCategory.BINARY,
    "BFILE": TypeCategory.BFILE,
    "BINARY_INTEGER": TypeCategory.INTEGER,
    "BINARY_FLOAT": TypeCategory.FLOAT,
    "BINARY_DOUBLE": TypeCategory.DOUBLE,
    "FLOAT": TypeCategory.DOUBLE,
    "XMLTYPE": TypeCategory.XML,
}

# TIMESTAMP(6), TIMESTAMP(3) WITH TIME ZONE, TIMESTAMP WITH LOCAL TIME ZONE, ...
_TIMESTAMP_RE = re.compile(r"^TIMESTAMP(?:\((\d+)\))?(\s+WITH(?:\s+LOCAL)?\s+TIME\s+ZONE)?$")

_LOB_TYPES = frozenset({"BLOB", "CLOB", "NCLOB"})
_STRING_TYPES = frozenset({"CHAR", "NCHAR", "VARCHAR2", "VARCHAR", "NVARCHAR2", "NVARCHAR",
                           "LONG", "CLOB", "NCLOB"})

_CURRENT_TIMESTAMP_LITERALS = frozenset({"SYSDATE", "SYSTIMESTAMP"})
_EMPTY_LOB_LITERALS = frozenset({"EMPTY_BLOB()", "EMPTY_CLOB()"})

# Precision used for NUMBER columns declared without one (e.g. INTEGER)
_DEFAULT_NUMBER_PRECISION = 38


def _normalize(data_type: Optional[str]) -> str:
    return " ".join((data_type or "").upper().split())


def get_oracle_type_category(data_type):
    """Determine the category of an Oracle data type name."""
    name = _normalize(data_type)
    category = _CATEGORY_BY_TYPE.get(name)
    if category is not None:
        return category
    match = _TIMESTAMP_RE.match(name)
    if match:
        return TypeCategory.TIMESTAMP_TZ if match.group(2) else TypeCategory.TIMESTAMP
    return TypeCategory.UNKNOWN


def _number_type(data_scale, data_precision):
    if data_precision is None and data_scale is None:
        return "numeric"
    precision = _DEFAULT_NUMBER_PRECISION if data_precision is None else data_precision
    scale = data_scale or 0
    if scale == 0:
        if precision < 5:
            return "smallint"
        if precision <= 8:
            return "int"
        if precision <= 18:
            return "bigint"
        return f"decimal({precision})"
    return f"decimal({precision},{scale})"


def _timestamp_type(data_type, data_length):
    match = _TIMESTAMP_RE.match(_normalize(data_type))
    digits = match.group(1) if match and match.group(1) else data_length
    return f"timestamp({digits})"


def map_oracle_to_postgres_type(data_type, data_length=None, data_scale=None, data_precision=None):
    """Map an Oracle column type to a PostgreSQL column type."""
    category = get_oracle_type_category(data_type)

    direct_map = {
        TypeCategory.DATE: "timestamp(0)",
        TypeCategory.TIMESTAMP_TZ: "timestamp(6) with time zone",
        TypeCategory.ROWID: "char(10)",
        TypeCategory.TEXT: "text",
        TypeCategory.BINARY: "bytea",
        TypeCategory.BFILE: "varchar(255)",  # only the file locator survives
        TypeCategory.INTEGER: "integer",
        TypeCategory.FLOAT: "real",
        TypeCategory.DOUBLE: "double precision",
        TypeCategory.XML: "xml",
    }

    if category in direct_map:
        return direct_map[category]

    if category == TypeCategory.CHAR:
        return f"char({data_length})"
    if category == TypeCategory.VARCHAR:
        return f"varchar({data_length})"
    if category == TypeCategory.NUMBER:
        return _number_type(data_scale, data_precision)
    if category == TypeCategory.TIMESTAMP:
        return _timestamp_type(data_type, data_length)

    logger.warning(f"Unknown Oracle type: {data_type}, using {UNKNOWN_TYPE}")
    return UNKNOWN_TYPE


def rewrite_default(data_default):
    """Translate an Oracle DEFAULT expression to PostgreSQL.

    Returns None when there is no default at all.
    """
    if data_default is None:
        return None
    expression = data_default.rstrip()
    if not expression:
        return None
    if expression.upper() in _CURRENT_TIMESTAMP_LITERALS:
        return CURRENT_TIMESTAMP_DEFAULT
    if expression.upper() in _EMPTY_LOB_LITERALS:
        return EMPTY_LOB_DEFAULT
    return expression


def quote_literal(text):
    """Escape text for use inside a single-quoted SQL literal."""
    return text.replace("'", "''")


def is_lob_type(data_type):
    return _normalize(data_type) in _LOB_TYPES


def is_string_type(data_type):
    return _normalize(data_type) in _STRING_TYPES
