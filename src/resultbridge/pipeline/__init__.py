#
# src/resultbridge/pipeline/__init__.py
#
"""
Output parsing and identity resolution stages of the correlation pipeline.
"""
from .aggregator import summarize
from .dialects import FormatDetector, classify_record
from .ingest import RecordBuffer
from .parsers import (
    AnnotatedTextParser,
    RecordParser,
    StructuredRecordParser,
    get_record_parser,
)
from .resolver import IdentityResolver, Resolution

__all__ = [
    "AnnotatedTextParser",
    "FormatDetector",
    "IdentityResolver",
    "RecordBuffer",
    "RecordParser",
    "Resolution",
    "StructuredRecordParser",
    "classify_record",
    "get_record_parser",
    "summarize",
]

# 🔼⚙️
