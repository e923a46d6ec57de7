"""
Type definitions for the PLMXML ingestion pipeline.

This module provides the entity records populated by the ingestion engine,
the occurrence tree nodes produced by the linker, and the result object
handed back to the presentation layer.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Tuple

from .diagnostics import Diagnostics


@dataclass
class Occurrence:
    """
    One positioned instance of a product revision in the product structure.

    The raw fields come straight from the <Occurrence> element and its
    AttributesInContext UserValues. The resolved fields are only filled on
    tree nodes produced by the linker.

    Attributes:
        id: Occurrence id
        instanced_ref: ProductRevision id (without '#')
        occurrence_ref_ids: Child occurrence ids, in document order
        associated_attachment_refs: AssociatedAttachment ids
        sequence_number: Find number from the "SequenceNumber" UserValue
        quantity: Quantity from the "Quantity" UserValue
        user_attributes: Remaining in-context UserValues

        display_name: Revision object_string, else revision name
        name: Revision name
        sub_type: Revision subtype
        revision: Revision label
        last_mod_date: Revision last modification date
        product_id: Business key of the master Product
        data_set_refs: DataSet ids attached to the revision
        sub_occurrences: Resolved child nodes
    """

    id: str
    instanced_ref: Optional[str] = None
    occurrence_ref_ids: List[str] = field(default_factory=list)
    associated_attachment_refs: List[str] = field(default_factory=list)
    sequence_number: Optional[str] = None
    quantity: Optional[str] = None
    user_attributes: Dict[str, str] = field(default_factory=dict)

    # === Resolved by the linker ===
    display_name: Optional[str] = None
    name: Optional[str] = None
    sub_type: Optional[str] = None
    revision: Optional[str] = None
    last_mod_date: Optional[str] = None
    product_id: Optional[str] = None
    data_set_refs: List[str] = field(default_factory=list)
    sub_occurrences: List["Occurrence"] = field(default_factory=list)

    @property
    def label(self) -> str:
        """Name shown in the BOM table: display name, else the occurrence id."""
        return self.display_name or self.id

    def walk(self):
        """Yield this node and all of its descendants, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.sub_occurrences))


@dataclass
class ProductView:
    """A configured product structure (one BOM) and its resolved roots."""

    id: str
    rule_refs: Optional[List[str]] = None
    primary_occurrence_ref: Optional[str] = None
    root_refs: Optional[List[str]] = None
    occurrences: List[Occurrence] = field(default_factory=list)

    def root_ids(self) -> List[str]:
        """Root occurrence ids: rootRefs, else the primary occurrence, else none."""
        if self.root_refs is not None:
            return list(self.root_refs)
        if self.primary_occurrence_ref is not None:
            return [self.primary_occurrence_ref]
        return []


@dataclass
class ProductRevision:
    id: str
    name: Optional[str] = None
    sub_type: Optional[str] = None
    revision: Optional[str] = None
    object_string: Optional[str] = None
    last_mod_date: Optional[str] = None
    master_ref: Optional[str] = None
    data_set_refs: List[str] = field(default_factory=list)
    user_attributes: Dict[str, str] = field(default_factory=dict)
    revision_uid: Optional[str] = None


@dataclass
class Product:
    id: str
    product_id: Optional[str] = None
    name: Optional[str] = None
    sub_type: Optional[str] = None
    uid: Optional[str] = None


@dataclass
class DataSet:
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    version: Optional[str] = None
    member_refs: List[str] = field(default_factory=list)
    uid: Optional[str] = None


@dataclass
class ExternalFile:
    """
    A single file referenced by a DataSet.

    Attributes:
        id: ExternalFile id
        location_ref: Location as written in the document (relative)
        full_path: location_ref resolved against the document directory
        format: File format (e.g. "JT", "PDF")
    """

    id: str
    location_ref: Optional[str] = None
    full_path: Optional[str] = None
    format: Optional[str] = None


@dataclass
class RevisionRule:
    id: str
    name: str


@dataclass
class Site:
    id: str
    name: Optional[str] = None
    site_id: Optional[str] = None


@dataclass
class Form:
    id: str
    name: Optional[str] = None
    sub_type: Optional[str] = None
    sub_class: Optional[str] = None
    user_attributes: Dict[str, str] = field(default_factory=dict)
    uid: Optional[str] = None


@dataclass
class AssociatedAttachment:
    """Link from an occurrence to an attached object (usually a Form)."""

    id: str
    attachment_ref: Optional[str] = None
    role: Optional[str] = None


@dataclass
class PLMXMLHeader:
    """Document header from the root <PLMXML> element, keyed by schema version."""

    id: str
    author: str
    date: str
    time: str


@dataclass
class TransferContext:
    id: str
    transfer_context: str


@dataclass
class BOMResult:
    """
    Result of one parse-and-link run.

    The product views carry the resolved occurrence forest; the flat tables
    are exposed unchanged so the presentation layer can look entities up by
    id for its detail panels.

    Attributes:
        product_views: ProductViews in document order, with resolved trees
        occurrences: Flat occurrence table (unresolved records)
        product_revisions: ProductRevision table
        products: Product table
        data_sets: DataSet table
        external_files: ExternalFile table
        revision_rules: RevisionRule table
        sites: Site table
        forms: Form table
        associated_attachments: AssociatedAttachment table
        headers: PLMXML header table (keyed by schema version)
        transfer_contexts: Header transfer-context table
        diagnostics: Non-fatal problems found while parsing and linking
        error: Fatal parse error message (empty result), or None
    """

    product_views: List[ProductView] = field(default_factory=list)
    occurrences: Dict[str, Occurrence] = field(default_factory=dict)
    product_revisions: Dict[str, ProductRevision] = field(default_factory=dict)
    products: Dict[str, Product] = field(default_factory=dict)
    data_sets: Dict[str, DataSet] = field(default_factory=dict)
    external_files: Dict[str, ExternalFile] = field(default_factory=dict)
    revision_rules: Dict[str, RevisionRule] = field(default_factory=dict)
    sites: Dict[str, Site] = field(default_factory=dict)
    forms: Dict[str, Form] = field(default_factory=dict)
    associated_attachments: Dict[str, AssociatedAttachment] = field(default_factory=dict)
    headers: Dict[str, PLMXMLHeader] = field(default_factory=dict)
    transfer_contexts: Dict[str, TransferContext] = field(default_factory=dict)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def status_message(self) -> str:
        """Short summary for the host status bar."""
        if self.error is not None:
            return f"Failed to parse PLMXML: {self.error}"
        if not self.product_views:
            return "No product views found"
        return f"Loaded {len(self.product_views)} product view(s)"

    def get_product_revision(self, revision_id: Optional[str]) -> Optional[ProductRevision]:
        if revision_id is None:
            return None
        return self.product_revisions.get(revision_id)

    def data_sets_for(self, occurrence: Occurrence) -> List[Tuple[str, Optional[DataSet]]]:
        """
        Pair each dataset ref on an occurrence with its DataSet record.

        Unknown refs are kept with a None record so callers can render an
        "Unknown DataSet" placeholder instead of dropping the row.
        """
        return [(ref, self.data_sets.get(ref)) for ref in occurrence.data_set_refs]

    def files_for(self, data_set: DataSet) -> List[Tuple[str, Optional[ExternalFile]]]:
        """Pair each member ref of a dataset with its ExternalFile record."""
        return [(ref, self.external_files.get(ref)) for ref in data_set.member_refs]

    def forms_for(self, occurrence: Occurrence) -> List[Form]:
        """
        Resolve the forms attached to an occurrence.

        Attachments that point at something other than a Form (for example a
        DataSet) are skipped.
        """
        forms: List[Form] = []
        for attachment_ref in occurrence.associated_attachment_refs:
            attachment = self.associated_attachments.get(attachment_ref)
            if attachment is None or attachment.attachment_ref is None:
                continue
            form = self.forms.get(attachment.attachment_ref)
            if form is not None:
                forms.append(form)
        return forms
