"""
PLMXML Streaming Ingestion Engine

Turns the start/end element events of a PLMXML document into id-keyed entity
tables (occurrences, product revisions, products, datasets, external files,
revision rules, sites, forms, attachments and header metadata).

Architecture:
1. ET.iterparse() - SAX-style event stream over an in-memory buffer
2. Attribute-driven dispatch - records are built from element attributes
3. Scope stack - every open container element pushes a scope; nested
   UserValue / ApplicationRef / AssociatedDataSet elements are attributed to
   the innermost open record, never to a record whose element has closed
4. Immediate memory release - elem.clear() once an element has ended

Linking the tables into an occurrence tree is done afterwards by
``pipeline.linker.build_tree``.
"""

import io
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union

from ..core import constants as C
from ..core.diagnostics import Diagnostics, MISSING_ID, DUPLICATE_ID
from ..core.errors import PLMXMLParseError
from ..core.types import (
    AssociatedAttachment,
    DataSet,
    ExternalFile,
    Form,
    Occurrence,
    PLMXMLHeader,
    Product,
    ProductRevision,
    ProductView,
    RevisionRule,
    Site,
    TransferContext,
)
from ..utils.logging import get_logger, log
from ..utils.paths import resolve_location
from ..utils.refs import local_attributes, local_name, optional_ref, optional_ref_list

logger = get_logger(__name__)

# ("start", name, attributes) or ("end", name, None)
ElementEvent = Tuple[str, str, Optional[Dict[str, str]]]


@dataclass
class IngestConfig:
    """Configuration for the ingestion engine."""

    base_path: Optional[str] = None
    """Directory ExternalFile locations are resolved against (None = keep relative)"""

    anonymous_ids: bool = True
    """Give elements without an id a synthetic unique id (False = keep "" and let them collide)"""

    release_elements: bool = True
    """Clear each element once it has ended to keep memory flat on large exports"""


@dataclass
class _Scope:
    """An open container element on the scope stack."""

    element: str
    record: object = None
    attributes_in_context: bool = False


def iter_element_events(
    data: Union[bytes, str],
    release_elements: bool = True,
) -> Iterator[ElementEvent]:
    """
    Stream element events from an in-memory PLMXML document.

    Element and attribute names are reduced to their local names.

    Args:
        data: Complete document bytes (str is encoded as UTF-8)
        release_elements: Clear elements after their end event

    Yields:
        ("start", name, attributes) and ("end", name, None) tuples

    Raises:
        PLMXMLParseError: If the document is not well-formed XML
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    try:
        for event, elem in ET.iterparse(io.BytesIO(data), events=("start", "end")):
            name = local_name(elem.tag)
            if event == "start":
                yield ("start", name, local_attributes(elem.attrib))
            else:
                yield ("end", name, None)
                if release_elements:
                    elem.clear()
    except ET.ParseError as e:
        raise PLMXMLParseError(f"Invalid PLMXML: {e}", getattr(e, "position", None)) from e


class PLMXMLIngestor:
    """
    Event-driven builder of the PLMXML entity tables.

    One instance handles one parse at a time; ``on_document_start()`` resets
    every table, so an instance can be reused for consecutive documents but
    must not be shared between concurrent parses.

    Example:
        ```python
        ingestor = PLMXMLIngestor(IngestConfig(base_path="/export"))
        views = ingestor.ingest(data)
        revision = ingestor.product_revisions["id12"]
        ```
    """

    def __init__(self, config: Optional[IngestConfig] = None):
        self.config = config or IngestConfig()

        self.product_views: List[ProductView] = []
        self.occurrences: Dict[str, Occurrence] = {}
        self.product_revisions: Dict[str, ProductRevision] = {}
        self.products: Dict[str, Product] = {}
        self.data_sets: Dict[str, DataSet] = {}
        self.external_files: Dict[str, ExternalFile] = {}
        self.revision_rules: Dict[str, RevisionRule] = {}
        self.sites: Dict[str, Site] = {}
        self.forms: Dict[str, Form] = {}
        self.associated_attachments: Dict[str, AssociatedAttachment] = {}
        self.headers: Dict[str, PLMXMLHeader] = {}
        self.transfer_contexts: Dict[str, TransferContext] = {}
        self.diagnostics = Diagnostics()

        self._scopes: List[_Scope] = []
        self._in_attributes_in_context = False
        self._anonymous_count = 0

        # Element name -> table for container records
        self._tables = {
            C.EL_OCCURRENCE: self.occurrences,
            C.EL_PRODUCT_REVISION: self.product_revisions,
            C.EL_PRODUCT: self.products,
            C.EL_DATA_SET: self.data_sets,
            C.EL_EXTERNAL_FILE: self.external_files,
            C.EL_FORM: self.forms,
            C.EL_SITE: self.sites,
        }

        self._start_handlers = {
            C.EL_PLMXML: self._start_plmxml,
            C.EL_HEADER: self._start_header,
            C.EL_REVISION_RULE: self._start_revision_rule,
            C.EL_SITE: self._start_site,
            C.EL_PRODUCT_VIEW: self._start_product_view,
            C.EL_OCCURRENCE: self._start_occurrence,
            C.EL_PRODUCT_REVISION: self._start_product_revision,
            C.EL_PRODUCT: self._start_product,
            C.EL_DATA_SET: self._start_data_set,
            C.EL_EXTERNAL_FILE: self._start_external_file,
            C.EL_FORM: self._start_form,
            C.EL_USER_DATA: self._start_user_data,
            C.EL_USER_VALUE: self._start_user_value,
            C.EL_ASSOCIATED_ATTACHMENT: self._start_associated_attachment,
            C.EL_ASSOCIATED_DATA_SET: self._start_associated_data_set,
            C.EL_APPLICATION_REF: self._start_application_ref,
        }

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def ingest(self, data: Union[bytes, str]) -> List[ProductView]:
        """
        Parse a complete PLMXML document into the entity tables.

        Args:
            data: Document bytes

        Returns:
            ProductViews in document order (roots not yet linked)

        Raises:
            PLMXMLParseError: Malformed XML. All tables are left empty.
        """
        log("Starting PLMXML parsing process.")
        self.on_document_start()

        try:
            for event, name, attributes in iter_element_events(
                data, release_elements=self.config.release_elements
            ):
                if event == "start":
                    self.on_element_start(name, attributes)
                else:
                    self.on_element_end(name)
        except PLMXMLParseError as e:
            log(f"PLMXML parsing failed: {e}")
            # No partial tables survive a fatal parse failure
            self.on_document_start()
            raise

        log(
            f"PLMXML parsing completed: {len(self.product_views)} product view(s), "
            f"{len(self.occurrences)} occurrence(s), "
            f"{len(self.product_revisions)} revision(s)"
        )
        return self.product_views

    def on_document_start(self) -> None:
        """Clear every table and all open-scope state."""
        self.product_views.clear()
        for table in (
            self.occurrences,
            self.product_revisions,
            self.products,
            self.data_sets,
            self.external_files,
            self.revision_rules,
            self.sites,
            self.forms,
            self.associated_attachments,
            self.headers,
            self.transfer_contexts,
        ):
            table.clear()
        self.diagnostics.clear()
        self._scopes.clear()
        self._in_attributes_in_context = False
        self._anonymous_count = 0
        logger.debug("Cleared all data and reset parser state.")

    def on_element_start(self, name: str, attributes: Dict[str, str]) -> None:
        handler = self._start_handlers.get(name)
        if handler is not None:
            handler(attributes)

    def on_element_end(self, name: str) -> None:
        if name not in C.CONTAINER_ELEMENTS and name != C.EL_USER_DATA:
            return
        if not self._scopes or self._scopes[-1].element != name:
            logger.debug(f"Unbalanced end of {name}, no matching open scope")
            return

        scope = self._scopes.pop()

        if name == C.EL_USER_DATA:
            self._in_attributes_in_context = any(
                s.attributes_in_context for s in self._scopes
            )
            logger.debug("Exited UserData block.")
        elif name == C.EL_PRODUCT_VIEW:
            self.product_views.append(scope.record)
        else:
            # Commit the record; nested elements may have updated it since open
            self._tables[name][scope.record.id] = scope.record

        logger.debug(f"Finished parsing element: {name}.")

    # ------------------------------------------------------------------
    # Identifier and scope helpers
    # ------------------------------------------------------------------

    def _element_id(self, element: str, attributes: Dict[str, str]) -> str:
        element_id = attributes.get("id")
        if element_id:
            return element_id

        if not self.config.anonymous_ids:
            self.diagnostics.add(MISSING_ID, f"{element} without id attribute", ref="")
            return ""

        self._anonymous_count += 1
        synthetic = f"{element}{C.ANONYMOUS_ID_MARKER}{self._anonymous_count}"
        self.diagnostics.add(
            MISSING_ID,
            f"{element} without id attribute, assigned {synthetic}",
            ref=synthetic,
        )
        return synthetic

    def _register(self, element: str, table: Dict[str, object], record) -> None:
        if record.id in table:
            self.diagnostics.add(
                DUPLICATE_ID,
                f"Duplicate {element} id={record.id!r}, later record replaces earlier",
                ref=record.id,
            )
        table[record.id] = record

    def _open(self, element: str, record) -> None:
        self._scopes.append(_Scope(element=element, record=record))

    def _innermost_entity(self) -> Optional[_Scope]:
        """Innermost open scope that holds a record (UserData scopes skipped)."""
        for scope in reversed(self._scopes):
            if scope.record is not None:
                return scope
        return None

    def _innermost_of(self, element: str) -> Optional[_Scope]:
        for scope in reversed(self._scopes):
            if scope.element == element:
                return scope
        return None

    # ------------------------------------------------------------------
    # Header / leaf elements
    # ------------------------------------------------------------------

    def _start_plmxml(self, attributes: Dict[str, str]) -> None:
        # e.g. <PLMXML schemaVersion="6" date="2025-01-27" time="10:15:00" author="Teamcenter">
        schema_version = attributes.get("schemaVersion", "")
        header = PLMXMLHeader(
            id=schema_version,
            author=attributes.get("author", C.DEFAULT_NO_NAME),
            date=attributes.get("date", C.DEFAULT_NO_NAME),
            time=attributes.get("time", C.DEFAULT_NO_NAME),
        )
        self.headers[schema_version] = header
        logger.debug(
            f"Parsed PLMXML header: schemaVersion={schema_version}, author={header.author}, "
            f"date={header.date}, time={header.time}."
        )

    def _start_header(self, attributes: Dict[str, str]) -> None:
        # e.g. <Header id="id1" traverseRootRefs="#id5" transferContext="ConfiguredDataFilesExportDefault"/>
        header_id = self._element_id(C.EL_HEADER, attributes)
        context = TransferContext(
            id=header_id,
            transfer_context=attributes.get("transferContext", C.DEFAULT_NO_TRANSFER_CONTEXT),
        )
        self._register(C.EL_HEADER, self.transfer_contexts, context)
        logger.debug(f"Parsed Header: id={header_id}, transferContext={context.transfer_context}.")

    def _start_revision_rule(self, attributes: Dict[str, str]) -> None:
        # e.g. <RevisionRule id="id2" name="Latest Working">
        rule = RevisionRule(
            id=self._element_id(C.EL_REVISION_RULE, attributes),
            name=attributes.get("name", C.DEFAULT_NO_NAME),
        )
        self._register(C.EL_REVISION_RULE, self.revision_rules, rule)
        logger.debug(f"Parsed RevisionRule: id={rule.id}, name={rule.name}.")

    def _start_associated_attachment(self, attributes: Dict[str, str]) -> None:
        attachment = AssociatedAttachment(
            id=self._element_id(C.EL_ASSOCIATED_ATTACHMENT, attributes),
            attachment_ref=optional_ref(attributes, "attachmentRef"),
            role=attributes.get("role"),
        )
        self._register(C.EL_ASSOCIATED_ATTACHMENT, self.associated_attachments, attachment)
        logger.debug(
            f"Parsed AssociatedAttachment: id={attachment.id}, "
            f"attachmentRef={attachment.attachment_ref}, role={attachment.role}."
        )

    # ------------------------------------------------------------------
    # Container elements
    # ------------------------------------------------------------------

    def _start_site(self, attributes: Dict[str, str]) -> None:
        site = Site(
            id=self._element_id(C.EL_SITE, attributes),
            name=attributes.get("name"),
            site_id=attributes.get("siteId"),
        )
        self._register(C.EL_SITE, self.sites, site)
        self._open(C.EL_SITE, site)
        logger.debug(f"Parsed Site: id={site.id}, name={site.name}, siteId={site.site_id}.")

    def _start_product_view(self, attributes: Dict[str, str]) -> None:
        view = ProductView(
            id=self._element_id(C.EL_PRODUCT_VIEW, attributes),
            rule_refs=optional_ref_list(attributes, "ruleRefs"),
            primary_occurrence_ref=optional_ref(attributes, "primaryOccurrenceRef"),
            root_refs=optional_ref_list(attributes, "rootRefs"),
        )
        self._open(C.EL_PRODUCT_VIEW, view)
        logger.debug(
            f"Parsed ProductView: id={view.id}, ruleRefs={view.rule_refs}, "
            f"primaryOccurrenceRef={view.primary_occurrence_ref}, rootRefs={view.root_refs}."
        )

    def _start_occurrence(self, attributes: Dict[str, str]) -> None:
        occurrence = Occurrence(
            id=self._element_id(C.EL_OCCURRENCE, attributes),
            instanced_ref=optional_ref(attributes, "instancedRef"),
            associated_attachment_refs=optional_ref_list(attributes, "associatedAttachmentRefs") or [],
            occurrence_ref_ids=optional_ref_list(attributes, "occurrenceRefs") or [],
        )
        self._register(C.EL_OCCURRENCE, self.occurrences, occurrence)
        self._open(C.EL_OCCURRENCE, occurrence)
        logger.debug(
            f"Parsed Occurrence: id={occurrence.id}, instancedRef={occurrence.instanced_ref}, "
            f"occurrenceRefs={occurrence.occurrence_ref_ids}."
        )

    def _start_product_revision(self, attributes: Dict[str, str]) -> None:
        revision = ProductRevision(
            id=self._element_id(C.EL_PRODUCT_REVISION, attributes),
            name=attributes.get("name"),
            sub_type=attributes.get("subType"),
            revision=attributes.get("revision"),
            master_ref=optional_ref(attributes, "masterRef"),
        )
        self._register(C.EL_PRODUCT_REVISION, self.product_revisions, revision)
        self._open(C.EL_PRODUCT_REVISION, revision)
        logger.debug(
            f"Parsed ProductRevision: id={revision.id}, name={revision.name}, "
            f"masterRef={revision.master_ref}."
        )

    def _start_product(self, attributes: Dict[str, str]) -> None:
        # e.g. <Product id="id26" name="Level1" subType="Item" productId="8882">
        product = Product(
            id=self._element_id(C.EL_PRODUCT, attributes),
            product_id=attributes.get("productId"),
            name=attributes.get("name"),
            sub_type=attributes.get("subType"),
        )
        self._register(C.EL_PRODUCT, self.products, product)
        self._open(C.EL_PRODUCT, product)
        logger.debug(f"Parsed Product: id={product.id}, productId={product.product_id}, name={product.name}.")

    def _start_data_set(self, attributes: Dict[str, str]) -> None:
        data_set = DataSet(
            id=self._element_id(C.EL_DATA_SET, attributes),
            name=attributes.get("name"),
            type=attributes.get("type"),
            version=attributes.get("version"),
            member_refs=optional_ref_list(attributes, "memberRefs") or [],
        )
        self._register(C.EL_DATA_SET, self.data_sets, data_set)
        self._open(C.EL_DATA_SET, data_set)
        logger.debug(f"Parsed DataSet: id={data_set.id}, name={data_set.name}, type={data_set.type}.")

    def _start_external_file(self, attributes: Dict[str, str]) -> None:
        location_ref = attributes.get("locationRef")
        external_file = ExternalFile(
            id=self._element_id(C.EL_EXTERNAL_FILE, attributes),
            location_ref=location_ref,
            full_path=resolve_location(self.config.base_path, location_ref),
            format=attributes.get("format"),
        )
        self._register(C.EL_EXTERNAL_FILE, self.external_files, external_file)
        self._open(C.EL_EXTERNAL_FILE, external_file)
        logger.debug(
            f"Parsed ExternalFile: id={external_file.id}, format={external_file.format}, "
            f"locationRef={location_ref}."
        )

    def _start_form(self, attributes: Dict[str, str]) -> None:
        form = Form(
            id=self._element_id(C.EL_FORM, attributes),
            name=attributes.get("name"),
            sub_type=attributes.get("subType"),
            sub_class=attributes.get("subClass"),
        )
        self._register(C.EL_FORM, self.forms, form)
        self._open(C.EL_FORM, form)
        logger.debug(f"Parsed Form: id={form.id}, name={form.name}, subType={form.sub_type}.")

    # ------------------------------------------------------------------
    # Nested elements
    # ------------------------------------------------------------------

    def _start_user_data(self, attributes: Dict[str, str]) -> None:
        in_context = attributes.get("type") == C.USER_DATA_ATTRIBUTES_IN_CONTEXT
        self._scopes.append(_Scope(element=C.EL_USER_DATA, attributes_in_context=in_context))
        if in_context:
            self._in_attributes_in_context = True
        logger.debug(f"Entered UserData block with type={attributes.get('type')}.")

    def _start_user_value(self, attributes: Dict[str, str]) -> None:
        title = attributes.get("title")
        value = attributes.get("value")
        if title is None or value is None:
            return

        scope = self._innermost_entity()
        if scope is None:
            logger.debug(f"UserValue {title!r} outside any entity, ignored.")
            return

        if scope.element == C.EL_OCCURRENCE:
            if not self._in_attributes_in_context:
                logger.debug(f"UserValue {title!r} on Occurrence outside AttributesInContext, ignored.")
                return
            self._set_user_value(scope.record, title, value, C.OCCURRENCE_RESERVED_TITLES)
        elif scope.element == C.EL_PRODUCT_REVISION:
            self._set_user_value(scope.record, title, value, C.REVISION_RESERVED_TITLES)
        elif scope.element == C.EL_FORM:
            self._set_user_value(scope.record, title, value, {})
        else:
            logger.debug(f"UserValue {title!r} on {scope.element}, ignored.")

    def _set_user_value(self, record, title: str, value: str, reserved: Dict[str, str]) -> None:
        field_name = reserved.get(title)
        if field_name is not None:
            setattr(record, field_name, value)
        else:
            record.user_attributes[title] = value
        logger.debug(f"Updated {type(record).__name__} {record.id} with {title} = {value}.")

    def _start_associated_data_set(self, attributes: Dict[str, str]) -> None:
        # e.g. <AssociatedDataSet dataSetRef="#id465" role="IMAN_specification"/>
        data_set_ref = optional_ref(attributes, "dataSetRef")
        scope = self._innermost_of(C.EL_PRODUCT_REVISION)
        if data_set_ref is None or scope is None:
            return
        scope.record.data_set_refs.append(data_set_ref)
        logger.debug(f"Updated ProductRevision {scope.record.id} with DataSetRef: {data_set_ref}.")

    def _start_application_ref(self, attributes: Dict[str, str]) -> None:
        # e.g. <ApplicationRef application="Teamcenter" label="QWERTY123" version="QWERTY123"/>
        version = attributes.get("version")
        if version is not None:
            scope = self._innermost_of(C.EL_PRODUCT_REVISION)
            if scope is not None:
                scope.record.revision_uid = version
                logger.debug(f"Parsed ApplicationRef version (uid) for ProductRevision {scope.record.id}: {version}")

        label = attributes.get("label")
        if label is None:
            return
        for element in C.APPLICATION_REF_LABEL_TARGETS:
            scope = self._innermost_of(element)
            if scope is not None:
                scope.record.uid = label
                logger.debug(f"Parsed ApplicationRef label (uid) for {element} {scope.record.id}: {label}")
                return


def parse_plmxml_tables(data: Union[bytes, str], base_path: Optional[str] = None) -> PLMXMLIngestor:
    """
    Convenience wrapper: ingest a document and return the populated engine.

    Args:
        data: Document bytes
        base_path: Directory ExternalFile locations are resolved against

    Returns:
        PLMXMLIngestor holding the flat tables

    Raises:
        PLMXMLParseError: Malformed XML
    """
    ingestor = PLMXMLIngestor(IngestConfig(base_path=base_path))
    ingestor.ingest(data)
    return ingestor


