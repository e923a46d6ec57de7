"""
PLMXML Streaming Ingestion Module

Event-driven parser that fills the id-keyed entity tables from a PLMXML
document.

Key Components:
- parser.py: ET.iterparse event stream and the PLMXMLIngestor scope-stack engine
"""

from .parser import PLMXMLIngestor, IngestConfig, iter_element_events, parse_plmxml_tables

__all__ = [
    "PLMXMLIngestor",
    "IngestConfig",
    "iter_element_events",
    "parse_plmxml_tables",
]
