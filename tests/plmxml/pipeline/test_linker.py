"""
Unit tests for the hierarchy linker

Tests cover:
1. Root selection (rootRefs, primaryOccurrenceRef, none)
2. Revision / product joins and display-name fallback
3. Child ordering and unresolved references
4. Cycle detection and deep hierarchies
5. Attachment, form and external-file references
6. Determinism and non-mutation of the flat tables
"""

import copy

import pytest

from plmxml_bom.core.diagnostics import (
    CYCLE,
    Diagnostics,
    UNRESOLVED_ATTACHMENT,
    UNRESOLVED_DATASET,
    UNRESOLVED_FILE,
    UNRESOLVED_FORM,
    UNRESOLVED_OCCURRENCE,
    UNRESOLVED_PRODUCT,
    UNRESOLVED_REVISION,
    UNRESOLVED_ROOT,
)
from plmxml_bom.core.types import (
    AssociatedAttachment,
    DataSet,
    ExternalFile,
    Form,
    Occurrence,
    Product,
    ProductRevision,
    ProductView,
)
from plmxml_bom.pipeline.linker import build_tree, count_nodes, index_nodes, join_revision
from plmxml_bom.streaming.parser import PLMXMLIngestor


def _occurrences(*items):
    return {o.id: o for o in items}


# ============================================================================
# Root selection
# ============================================================================

class TestRootSelection:

    def test_root_refs_in_order(self):
        occurrences = _occurrences(Occurrence(id="r1"), Occurrence(id="r2"))
        view = ProductView(id="pv", root_refs=["r1", "r2"], primary_occurrence_ref="r2")

        [linked] = build_tree([view], occurrences, {}, {})

        assert [n.id for n in linked.occurrences] == ["r1", "r2"]

    def test_primary_occurrence_when_no_root_refs(self):
        occurrences = _occurrences(Occurrence(id="r1"), Occurrence(id="r2"))
        view = ProductView(id="pv", primary_occurrence_ref="r2")

        [linked] = build_tree([view], occurrences, {}, {})

        assert [n.id for n in linked.occurrences] == ["r2"]

    def test_no_roots(self):
        view = ProductView(id="pv")

        [linked] = build_tree([view], _occurrences(Occurrence(id="r1")), {}, {})

        assert linked.occurrences == []

    def test_unknown_root_is_reported(self):
        diagnostics = Diagnostics()
        view = ProductView(id="pv", root_refs=["missing", "r1"])

        [linked] = build_tree([view], _occurrences(Occurrence(id="r1")), {}, {}, diagnostics)

        assert [n.id for n in linked.occurrences] == ["r1"]
        assert diagnostics.refs(UNRESOLVED_ROOT) == ["missing"]

    def test_views_keep_document_order(self):
        views = [ProductView(id="b"), ProductView(id="a")]

        linked = build_tree(views, {}, {}, {})

        assert [v.id for v in linked] == ["b", "a"]


# ============================================================================
# Joins
# ============================================================================

class TestJoins:

    def test_product_id_through_master_ref(self):
        revisions = {"pr1": ProductRevision(id="pr1", name="Bracket", master_ref="p1")}
        products = {"p1": Product(id="p1", product_id="8882")}
        node = Occurrence(id="o1", instanced_ref="pr1")

        join_revision(node, revisions, products)

        assert node.product_id == "8882"

    @pytest.mark.parametrize("object_string, name, expected", [
        ("8882/A;1-Bracket", "Bracket", "8882/A;1-Bracket"),
        (None, "Bracket", "Bracket"),
        (None, None, "o1"),
    ])
    def test_display_name_fallback(self, object_string, name, expected):
        revisions = {"pr1": ProductRevision(id="pr1", name=name, object_string=object_string)}
        node = Occurrence(id="o1", instanced_ref="pr1")

        join_revision(node, revisions, {})

        assert node.display_name == expected
        assert node.label == expected

    def test_revision_fields_copied(self):
        revisions = {
            "pr1": ProductRevision(
                id="pr1",
                name="Bracket",
                sub_type="ItemRevision",
                revision="B",
                last_mod_date="2025-01-20",
                data_set_refs=["ds1", "ds2"],
            )
        }
        node = Occurrence(id="o1", instanced_ref="pr1")

        join_revision(node, revisions, {})

        assert node.name == "Bracket"
        assert node.sub_type == "ItemRevision"
        assert node.revision == "B"
        assert node.last_mod_date == "2025-01-20"
        assert node.data_set_refs == ["ds1", "ds2"]
        # The node holds its own copy of the list
        assert node.data_set_refs is not revisions["pr1"].data_set_refs

    def test_unresolved_revision_and_product_reported(self):
        diagnostics = Diagnostics()
        revisions = {"pr1": ProductRevision(id="pr1", master_ref="p404")}
        occurrences = _occurrences(
            Occurrence(id="o1", instanced_ref="pr404", occurrence_ref_ids=["o2"]),
            Occurrence(id="o2", instanced_ref="pr1"),
        )
        view = ProductView(id="pv", root_refs=["o1"])

        [linked] = build_tree([view], occurrences, revisions, {}, diagnostics)

        root = linked.occurrences[0]
        assert root.display_name is None
        assert root.label == "o1"
        assert root.sub_occurrences[0].product_id is None
        assert diagnostics.refs(UNRESOLVED_REVISION) == ["pr404"]
        assert diagnostics.refs(UNRESOLVED_PRODUCT) == ["p404"]

    def test_unknown_data_set_kept_and_reported(self):
        diagnostics = Diagnostics()
        revisions = {"pr1": ProductRevision(id="pr1", data_set_refs=["ds1", "dsX"])}
        data_sets = {"ds1": DataSet(id="ds1")}
        occurrences = _occurrences(Occurrence(id="o1", instanced_ref="pr1"))
        view = ProductView(id="pv", root_refs=["o1"])

        [linked] = build_tree([view], occurrences, revisions, {}, diagnostics, data_sets=data_sets)

        node = linked.occurrences[0]
        assert node.data_set_refs == ["ds1", "dsX"]
        assert "dsX" not in data_sets
        assert diagnostics.refs(UNRESOLVED_DATASET) == ["dsX"]


# ============================================================================
# Children
# ============================================================================

class TestChildren:

    def test_child_order_follows_refs(self):
        occurrences = _occurrences(
            Occurrence(id="root", occurrence_ref_ids=["c3", "c1", "c2"]),
            Occurrence(id="c1"),
            Occurrence(id="c2"),
            Occurrence(id="c3"),
        )
        view = ProductView(id="pv", root_refs=["root"])

        [linked] = build_tree([view], occurrences, {}, {})

        assert [c.id for c in linked.occurrences[0].sub_occurrences] == ["c3", "c1", "c2"]

    def test_unresolved_child_dropped_and_reported(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(
            Occurrence(id="root", occurrence_ref_ids=["c1", "gone"]),
            Occurrence(id="c1"),
        )
        view = ProductView(id="pv", root_refs=["root"])

        [linked] = build_tree([view], occurrences, {}, {}, diagnostics)

        assert [c.id for c in linked.occurrences[0].sub_occurrences] == ["c1"]
        assert diagnostics.refs(UNRESOLVED_OCCURRENCE) == ["gone"]

    def test_shared_child_is_not_a_cycle(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(
            Occurrence(id="root", occurrence_ref_ids=["a", "b"]),
            Occurrence(id="a", occurrence_ref_ids=["shared"]),
            Occurrence(id="b", occurrence_ref_ids=["shared"]),
            Occurrence(id="shared"),
        )
        view = ProductView(id="pv", root_refs=["root"])

        [linked] = build_tree([view], occurrences, {}, {}, diagnostics)

        assert len(index_nodes(linked)["shared"]) == 2
        assert count_nodes(linked) == 5
        assert diagnostics.of_kind(CYCLE) == []


# ============================================================================
# Cycles
# ============================================================================

class TestCycles:

    def test_two_node_cycle_terminates(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(
            Occurrence(id="A", occurrence_ref_ids=["B"]),
            Occurrence(id="B", occurrence_ref_ids=["A"]),
        )
        view = ProductView(id="pv", root_refs=["A"])

        [linked] = build_tree([view], occurrences, {}, {}, diagnostics)

        a = linked.occurrences[0]
        assert [c.id for c in a.sub_occurrences] == ["B"]
        assert a.sub_occurrences[0].sub_occurrences == []
        [cycle] = diagnostics.of_kind(CYCLE)
        assert cycle.ref == "A"
        assert cycle.owner == "B"

    def test_self_reference(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(Occurrence(id="A", occurrence_ref_ids=["A", "c"]), Occurrence(id="c"))
        view = ProductView(id="pv", root_refs=["A"])

        [linked] = build_tree([view], occurrences, {}, {}, diagnostics)

        assert [c.id for c in linked.occurrences[0].sub_occurrences] == ["c"]
        assert diagnostics.refs(CYCLE) == ["A"]

    def test_deep_cycle(self):
        diagnostics = Diagnostics()
        chain = [Occurrence(id=f"n{i}", occurrence_ref_ids=[f"n{i + 1}"]) for i in range(50)]
        chain.append(Occurrence(id="n50", occurrence_ref_ids=["n10"]))
        view = ProductView(id="pv", root_refs=["n0"])

        [linked] = build_tree([view], _occurrences(*chain), {}, {}, diagnostics)

        assert count_nodes(linked) == 51
        assert diagnostics.refs(CYCLE) == ["n10"]

    def test_deep_chain_does_not_exhaust_the_stack(self):
        diagnostics = Diagnostics()
        depth = 5000
        chain = [Occurrence(id=f"n{i}", occurrence_ref_ids=[f"n{i + 1}"]) for i in range(depth)]
        chain.append(Occurrence(id=f"n{depth}"))
        view = ProductView(id="pv", root_refs=["n0"])

        [linked] = build_tree([view], _occurrences(*chain), {}, {}, diagnostics)

        assert count_nodes(linked) == depth + 1
        assert [n.id for n in linked.occurrences[0].walk()][-1] == f"n{depth}"
        assert len(diagnostics) == 0

    def test_deep_chain_closing_on_root(self):
        diagnostics = Diagnostics()
        depth = 5000
        chain = [Occurrence(id=f"n{i}", occurrence_ref_ids=[f"n{i + 1}"]) for i in range(depth)]
        chain.append(Occurrence(id=f"n{depth}", occurrence_ref_ids=["n0"]))
        view = ProductView(id="pv", root_refs=["n0"])

        [linked] = build_tree([view], _occurrences(*chain), {}, {}, diagnostics)

        assert count_nodes(linked) == depth + 1
        assert diagnostics.refs(CYCLE) == ["n0"]

    def test_path_released_between_roots(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(
            Occurrence(id="a", occurrence_ref_ids=["shared"]),
            Occurrence(id="b", occurrence_ref_ids=["a"]),
            Occurrence(id="shared"),
        )
        view = ProductView(id="pv", root_refs=["a", "b"])

        [linked] = build_tree([view], occurrences, {}, {}, diagnostics)

        assert count_nodes(linked) == 5
        assert diagnostics.of_kind(CYCLE) == []


# ============================================================================
# Attachments, forms and external files
# ============================================================================

class TestAttachmentReferences:

    def test_unknown_attachment_reported(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(Occurrence(id="o1", associated_attachment_refs=["att1", "attX"]))
        attachments = {"att1": AssociatedAttachment(id="att1", attachment_ref="f1")}
        forms = {"f1": Form(id="f1")}
        view = ProductView(id="pv", root_refs=["o1"])

        [linked] = build_tree(
            [view], occurrences, {}, {}, diagnostics,
            associated_attachments=attachments, forms=forms,
        )

        assert linked.occurrences[0].associated_attachment_refs == ["att1", "attX"]
        [missing] = diagnostics.of_kind(UNRESOLVED_ATTACHMENT)
        assert missing.ref == "attX"
        assert missing.owner == "o1"
        assert diagnostics.of_kind(UNRESOLVED_FORM) == []

    def test_unknown_attachment_target_reported(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(Occurrence(id="o1", associated_attachment_refs=["att1", "att2"]))
        attachments = {
            "att1": AssociatedAttachment(id="att1", attachment_ref="formX"),
            "att2": AssociatedAttachment(id="att2", attachment_ref="ds1"),
        }
        view = ProductView(id="pv", root_refs=["o1"])

        build_tree(
            [view], occurrences, {}, {}, diagnostics,
            data_sets={"ds1": DataSet(id="ds1")},
            associated_attachments=attachments,
            forms={},
        )

        [missing] = diagnostics.of_kind(UNRESOLVED_FORM)
        assert missing.ref == "formX"
        assert missing.owner == "att1"

    def test_unknown_data_set_member_reported(self):
        diagnostics = Diagnostics()
        data_sets = {"ds1": DataSet(id="ds1", member_refs=["ef1", "efX"])}
        external_files = {"ef1": ExternalFile(id="ef1")}

        build_tree([], {}, {}, {}, diagnostics, data_sets=data_sets, external_files=external_files)

        [missing] = diagnostics.of_kind(UNRESOLVED_FILE)
        assert missing.ref == "efX"
        assert missing.owner == "ds1"

    def test_checks_skipped_without_tables(self):
        diagnostics = Diagnostics()
        occurrences = _occurrences(Occurrence(id="o1", associated_attachment_refs=["attX"]))
        view = ProductView(id="pv", root_refs=["o1"])

        build_tree([view], occurrences, {}, {}, diagnostics, data_sets={"ds1": DataSet(id="ds1", member_refs=["efX"])})

        assert diagnostics.of_kind(UNRESOLVED_ATTACHMENT) == []
        assert diagnostics.of_kind(UNRESOLVED_FILE) == []


# ============================================================================
# Whole-document behaviour
# ============================================================================

def test_flat_tables_not_mutated(sample_plmxml):
    ingestor = PLMXMLIngestor()
    ingestor.ingest(sample_plmxml)
    before = copy.deepcopy(ingestor.occurrences)
    views_before = copy.deepcopy(ingestor.product_views)

    build_tree(
        ingestor.product_views,
        ingestor.occurrences,
        ingestor.product_revisions,
        ingestor.products,
    )

    assert ingestor.occurrences == before
    assert ingestor.product_views == views_before


def test_linking_is_deterministic(sample_plmxml):
    results = []
    for _ in range(2):
        ingestor = PLMXMLIngestor()
        ingestor.ingest(sample_plmxml)
        results.append(build_tree(
            ingestor.product_views,
            ingestor.occurrences,
            ingestor.product_revisions,
            ingestor.products,
        ))

    assert results[0] == results[1]
    assert repr(results[0]) == repr(results[1])
