"""
app/mappers package marker.
"""

from app.mappers.header_mapper import (
    HeaderMapper,
    HeaderResolution,
    detect_component,
    detect_delimiter,
    month_index,
    normalize_header_token,
)

__all__ = [
    "HeaderMapper",
    "HeaderResolution",
    "detect_component",
    "detect_delimiter",
    "month_index",
    "normalize_header_token",
]
