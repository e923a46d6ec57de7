"""Exceptions raised by the PLMXML ingestion pipeline."""


class PLMXMLError(Exception):
    """Base class for PLMXML ingestion errors."""


class PLMXMLParseError(PLMXMLError, ValueError):
    """
    The document is not well-formed XML.

    This is fatal for the whole parse: no partial tables are kept.
    """

    def __init__(self, message: str, position=None):
        super().__init__(message)
        self.position = position
