"""
Hierarchy linker - resolves flat PLMXML tables into occurrence trees.

Runs once ingestion has finished. For every ProductView the root occurrence
ids are resolved and each occurrence is joined to its ProductRevision and
master Product, then its children are resolved depth first.

The flat tables are never mutated: every tree node is a fresh copy of its
occurrence record. The walk keeps its own stack of frames and the set of ids
on the active path, so deep exports do not hit the interpreter recursion
limit and an export whose occurrenceRefs form a cycle terminates with a
CYCLE diagnostic.
"""

from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Set, Tuple

from ..core.diagnostics import (
    Diagnostics,
    CYCLE,
    UNRESOLVED_ATTACHMENT,
    UNRESOLVED_DATASET,
    UNRESOLVED_FILE,
    UNRESOLVED_FORM,
    UNRESOLVED_OCCURRENCE,
    UNRESOLVED_PRODUCT,
    UNRESOLVED_REVISION,
    UNRESOLVED_ROOT,
)
from ..core.types import (
    AssociatedAttachment,
    DataSet,
    ExternalFile,
    Form,
    Occurrence,
    Product,
    ProductRevision,
    ProductView,
)
from ..utils.logging import get_logger, log

logger = get_logger(__name__)


def join_revision(
    node: Occurrence,
    revisions: Mapping[str, ProductRevision],
    products: Mapping[str, Product],
    diagnostics: Optional[Diagnostics] = None,
) -> None:
    """
    Copy revision and master product fields onto a tree node.

    Display name falls back from the revision object string to the revision
    name, then to the occurrence id.

    Args:
        node: Tree node to fill (modified in place)
        revisions: ProductRevision table
        products: Product table
        diagnostics: Collector for unresolved references
    """
    if node.instanced_ref is None:
        return

    revision = revisions.get(node.instanced_ref)
    if revision is None:
        if diagnostics is not None:
            diagnostics.add(
                UNRESOLVED_REVISION,
                f"Occurrence {node.id} instancedRef {node.instanced_ref} not found",
                ref=node.instanced_ref,
                owner=node.id,
            )
        return

    node.display_name = revision.object_string or revision.name or node.id
    node.name = revision.name
    node.sub_type = revision.sub_type
    node.revision = revision.revision
    node.last_mod_date = revision.last_mod_date
    node.data_set_refs = list(revision.data_set_refs)

    if revision.master_ref is None:
        return

    product = products.get(revision.master_ref)
    if product is None:
        if diagnostics is not None:
            diagnostics.add(
                UNRESOLVED_PRODUCT,
                f"ProductRevision {revision.id} masterRef {revision.master_ref} not found",
                ref=revision.master_ref,
                owner=revision.id,
            )
        return
    node.product_id = product.product_id


class _TreeBuilder:
    """Path-tracked resolver for one linking run, driven by an explicit work stack."""

    def __init__(
        self,
        occurrences: Mapping[str, Occurrence],
        revisions: Mapping[str, ProductRevision],
        products: Mapping[str, Product],
        diagnostics: Diagnostics,
        data_sets: Optional[Mapping[str, DataSet]] = None,
        associated_attachments: Optional[Mapping[str, AssociatedAttachment]] = None,
        forms: Optional[Mapping[str, Form]] = None,
    ):
        self.occurrences = occurrences
        self.revisions = revisions
        self.products = products
        self.diagnostics = diagnostics
        self.data_sets = data_sets
        self.associated_attachments = associated_attachments
        self.forms = forms
        self._on_path: Set[str] = set()

    def build(self, occurrence: Occurrence) -> Occurrence:
        """
        Resolve one root occurrence and everything below it.

        Depth is bounded only by memory: frames are
        (occurrence, node, next child index) tuples on a list, not Python
        call frames.
        """
        root = self._new_node(occurrence)
        self._on_path.add(occurrence.id)
        stack: List[Tuple[Occurrence, Occurrence, int]] = [(occurrence, root, 0)]

        try:
            while stack:
                parent, node, index = stack[-1]
                if index >= len(parent.occurrence_ref_ids):
                    stack.pop()
                    self._on_path.discard(parent.id)
                    continue
                stack[-1] = (parent, node, index + 1)

                child_id = parent.occurrence_ref_ids[index]
                if child_id in self._on_path:
                    self.diagnostics.add(
                        CYCLE,
                        f"Occurrence {parent.id} -> {child_id} closes a cycle, edge not followed",
                        ref=child_id,
                        owner=parent.id,
                    )
                    continue

                child = self.occurrences.get(child_id)
                if child is None:
                    self.diagnostics.add(
                        UNRESOLVED_OCCURRENCE,
                        f"Occurrence {parent.id} child {child_id} not found",
                        ref=child_id,
                        owner=parent.id,
                    )
                    continue

                child_node = self._new_node(child)
                node.sub_occurrences.append(child_node)
                self._on_path.add(child.id)
                stack.append((child, child_node, 0))
        finally:
            for frame_occurrence, _, _ in stack:
                self._on_path.discard(frame_occurrence.id)

        return root

    def _new_node(self, occurrence: Occurrence) -> Occurrence:
        node = replace(
            occurrence,
            occurrence_ref_ids=list(occurrence.occurrence_ref_ids),
            associated_attachment_refs=list(occurrence.associated_attachment_refs),
            user_attributes=dict(occurrence.user_attributes),
            data_set_refs=[],
            sub_occurrences=[],
        )
        join_revision(node, self.revisions, self.products, self.diagnostics)
        self._check_data_sets(node)
        self._check_attachments(node)
        return node

    def _check_data_sets(self, node: Occurrence) -> None:
        if self.data_sets is None:
            return
        for ref in node.data_set_refs:
            if ref not in self.data_sets:
                self.diagnostics.add(
                    UNRESOLVED_DATASET,
                    f"Occurrence {node.id} DataSet {ref} not found (unknown)",
                    ref=ref,
                    owner=node.id,
                )

    def _check_attachments(self, node: Occurrence) -> None:
        if self.associated_attachments is None:
            return
        for ref in node.associated_attachment_refs:
            attachment = self.associated_attachments.get(ref)
            if attachment is None:
                self.diagnostics.add(
                    UNRESOLVED_ATTACHMENT,
                    f"Occurrence {node.id} AssociatedAttachment {ref} not found",
                    ref=ref,
                    owner=node.id,
                )
                continue

            target = attachment.attachment_ref
            if target is None or self.forms is None or target in self.forms:
                continue
            # Attachments may also point at datasets
            if self.data_sets is not None and target in self.data_sets:
                continue
            self.diagnostics.add(
                UNRESOLVED_FORM,
                f"AssociatedAttachment {attachment.id} attachmentRef {target} not found",
                ref=target,
                owner=attachment.id,
            )


def check_data_set_members(
    data_sets: Mapping[str, DataSet],
    external_files: Mapping[str, ExternalFile],
    diagnostics: Diagnostics,
) -> None:
    """Report every DataSet memberRef that has no ExternalFile record."""
    for data_set in data_sets.values():
        for ref in data_set.member_refs:
            if ref not in external_files:
                diagnostics.add(
                    UNRESOLVED_FILE,
                    f"DataSet {data_set.id} member {ref} not found",
                    ref=ref,
                    owner=data_set.id,
                )


def build_tree(
    product_views: List[ProductView],
    occurrences: Mapping[str, Occurrence],
    revisions: Mapping[str, ProductRevision],
    products: Mapping[str, Product],
    diagnostics: Optional[Diagnostics] = None,
    data_sets: Optional[Mapping[str, DataSet]] = None,
    associated_attachments: Optional[Mapping[str, AssociatedAttachment]] = None,
    forms: Optional[Mapping[str, Form]] = None,
    external_files: Optional[Mapping[str, ExternalFile]] = None,
) -> List[ProductView]:
    """
    Build the occurrence forest of every ProductView.

    Args:
        product_views: Parsed ProductViews in document order
        occurrences: Occurrence table
        revisions: ProductRevision table
        products: Product table
        diagnostics: Collector for unresolved references and cycles
            (a fresh one is used when omitted)
        data_sets: DataSet table; when given, unknown dataset refs on
            the joined nodes are reported
        associated_attachments: AssociatedAttachment table; when given,
            unknown attachment refs on the nodes are reported
        forms: Form table; when given together with the attachments,
            attachment targets that are neither a Form nor a DataSet are
            reported
        external_files: ExternalFile table; when given together with the
            datasets, unknown dataset members are reported

    Returns:
        New ProductView objects whose ``occurrences`` hold the resolved
        roots, in root-ref order

    Example:
        ```python
        views = build_tree(
            ingestor.product_views,
            ingestor.occurrences,
            ingestor.product_revisions,
            ingestor.products,
        )
        for root in views[0].occurrences:
            for node in root.walk():
                print(node.product_id, node.label)
        ```
    """
    if diagnostics is None:
        diagnostics = Diagnostics()

    log("Building BOM hierarchy and linking data.")
    builder = _TreeBuilder(
        occurrences,
        revisions,
        products,
        diagnostics,
        data_sets=data_sets,
        associated_attachments=associated_attachments,
        forms=forms,
    )

    linked: List[ProductView] = []
    for view in product_views:
        roots: List[Occurrence] = []
        for root_id in view.root_ids():
            root = occurrences.get(root_id)
            if root is None:
                diagnostics.add(
                    UNRESOLVED_ROOT,
                    f"ProductView {view.id} root {root_id} not found",
                    ref=root_id,
                    owner=view.id,
                )
                continue
            roots.append(builder.build(root))

        linked.append(
            replace(
                view,
                rule_refs=list(view.rule_refs) if view.rule_refs is not None else None,
                root_refs=list(view.root_refs) if view.root_refs is not None else None,
                occurrences=roots,
            )
        )
        logger.debug(f"ProductView {view.id}: {len(roots)} root occurrence(s)")

    if data_sets is not None and external_files is not None:
        check_data_set_members(data_sets, external_files, diagnostics)

    log(f"BOM hierarchy built: {len(linked)} product view(s), {len(diagnostics)} diagnostic(s).")
    return linked


def count_nodes(view: ProductView) -> int:
    """Total number of occurrence nodes in a linked ProductView."""
    return sum(1 for root in view.occurrences for _ in root.walk())


def index_nodes(view: ProductView) -> Dict[str, List[Occurrence]]:
    """
    Index the nodes of a linked ProductView by occurrence id.

    The same occurrence can appear more than once when it is shared by
    several parents, hence the list values.
    """
    index: Dict[str, List[Occurrence]] = {}
    for root in view.occurrences:
        for node in root.walk():
            index.setdefault(node.id, []).append(node)
    return index
