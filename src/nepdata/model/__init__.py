"""Core data model for nepdata: frames and atom-line column layouts.

Everything is re-exported here so that ``from nepdata.model import
Frame`` works without knowing the submodule layout.
"""

from nepdata.model.column_map import ColumnMap, PropertyField
from nepdata.model.frame import Frame

__all__ = [
    "ColumnMap",
    "Frame",
    "PropertyField",
]
