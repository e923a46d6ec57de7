"""
Parse-and-link pipeline - bytes + base path -> BOMResult.

PHASE:1 ingest the document into flat tables (fatal on malformed XML)
PHASE:2 link every ProductView into an occurrence tree
PHASE:3 hand the trees and the tables to the host

A fatal parse failure never escapes as an exception from ``load_plmxml``:
it yields an empty BOMResult with ``error`` set, so the host can show its
status message.
"""

import os
from pathlib import Path
from typing import Optional, TextIO, Union

from ..config import get_settings
from ..core.errors import PLMXMLParseError
from ..core.types import BOMResult
from ..streaming.parser import IngestConfig, PLMXMLIngestor
from ..utils.logging import get_logger, log, set_log_file, close_log_file, get_log_file
from .linker import build_tree

logger = get_logger(__name__)


def load_plmxml(
    data: Union[bytes, str],
    base_path: Optional[Union[str, "os.PathLike[str]"]] = None,
    log_file: Optional[TextIO] = None,
    anonymous_ids: bool = True,
) -> BOMResult:
    """
    Parse a PLMXML document and build its BOM trees.

    Args:
        data: Complete document bytes
        base_path: Directory ExternalFile locations are resolved against
        log_file: Optional per-parse log file (thread-local, closed afterwards)
        anonymous_ids: Give elements without an id a synthetic unique id

    Returns:
        BOMResult with the linked ProductViews, the flat tables and the
        diagnostics. On malformed XML every table is empty and ``error``
        holds the parser message.

    Example:
        ```python
        with open("export/assembly.plmxml", "rb") as f:
            result = load_plmxml(f.read(), base_path="export")
        if not result.product_views:
            print(result.status_message())
        ```
    """
    previous_log_file = get_log_file()
    if log_file is not None:
        set_log_file(log_file)

    try:
        base = os.fspath(base_path) if base_path is not None else None
        ingestor = PLMXMLIngestor(IngestConfig(base_path=base, anonymous_ids=anonymous_ids))

        # === PHASE:1 Ingestion ===
        try:
            ingestor.ingest(data)
        except PLMXMLParseError as e:
            logger.error(f"Failed to parse PLMXML: {e}")
            return BOMResult(error=str(e))

        # === PHASE:2 Linking ===
        diagnostics = ingestor.diagnostics
        views = build_tree(
            ingestor.product_views,
            ingestor.occurrences,
            ingestor.product_revisions,
            ingestor.products,
            diagnostics=diagnostics,
            data_sets=ingestor.data_sets,
            associated_attachments=ingestor.associated_attachments,
            forms=ingestor.forms,
            external_files=ingestor.external_files,
        )

        # === PHASE:3 Result ===
        result = BOMResult(
            product_views=views,
            occurrences=dict(ingestor.occurrences),
            product_revisions=dict(ingestor.product_revisions),
            products=dict(ingestor.products),
            data_sets=dict(ingestor.data_sets),
            external_files=dict(ingestor.external_files),
            revision_rules=dict(ingestor.revision_rules),
            sites=dict(ingestor.sites),
            forms=dict(ingestor.forms),
            associated_attachments=dict(ingestor.associated_attachments),
            headers=dict(ingestor.headers),
            transfer_contexts=dict(ingestor.transfer_contexts),
            diagnostics=diagnostics,
        )
        if not views:
            log("No product views found.")
        if diagnostics:
            logger.warning(f"{len(diagnostics)} diagnostic(s) while loading PLMXML")
        return result
    finally:
        if log_file is not None:
            close_log_file()
            set_log_file(previous_log_file)


def load_plmxml_file(
    path: Union[str, Path],
    base_path: Optional[Union[str, Path]] = None,
) -> BOMResult:
    """
    Read a PLMXML file and build its BOM trees.

    External files are resolved against the directory of the document unless
    ``base_path`` is given. When PLMXML_LOG_FILE is set, the parse is logged
    to that file as well.

    Raises:
        FileNotFoundError: If the document does not exist
    """
    path = Path(path)
    data = path.read_bytes()
    if base_path is None:
        base_path = path.resolve().parent

    settings = get_settings()
    log_file = None
    if settings.log_file:
        log_file = open(settings.log_file, "a", encoding="utf-8")

    log(f"Starting to load {path.name}")
    result = load_plmxml(data, base_path=base_path, log_file=log_file)
    logger.info(f"Finished processing {path.name} with {len(result.product_views)} ProductViews found.")
    return result
