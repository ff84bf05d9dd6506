"""
app/validators package marker.
"""

from app.validators.point_row_validator import InvalidNumber, PointRowValidator, parse_number

__all__ = [
    "InvalidNumber",
    "PointRowValidator",
    "parse_number",
]
