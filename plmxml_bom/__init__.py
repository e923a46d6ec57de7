"""
PLMXML BOM ingestion.

Parses a PLMXML product-structure export into flat entity tables and links
them into navigable bill-of-materials trees, one per ProductView.

Public API:
- load_plmxml(): bytes + base path -> BOMResult
- load_plmxml_file(): read a .plmxml file, resolving external files next to it
"""

from .pipeline.orchestrator import load_plmxml, load_plmxml_file
from .core.types import BOMResult
from .core.errors import PLMXMLError, PLMXMLParseError

__all__ = [
    "load_plmxml",
    "load_plmxml_file",
    "BOMResult",
    "PLMXMLError",
    "PLMXMLParseError",
]
