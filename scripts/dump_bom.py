#!/usr/bin/env python3
"""
Print the BOM trees of a PLMXML export.

Loads the document with plmxml_bom, then prints every ProductView as an
indented table (Item Id, Name, Type, Rev, Seq#, Quantity) or, with --json,
as a JSON document. Diagnostics (unresolved references, cycles, missing
ids) are listed at the end.

Usage:
    python scripts/dump_bom.py export/assembly.plmxml
    python scripts/dump_bom.py export/assembly.plmxml --json --output bom.json
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from plmxml_bom import load_plmxml_file
from plmxml_bom.config import get_settings, load_env_file
from plmxml_bom.core.types import BOMResult, Occurrence
from plmxml_bom.sites import StaticSiteSettings, external_link, find_matching_site
from plmxml_bom.utils.logging import configure_logging


def _node_row(node: Occurrence, depth: int) -> str:
    indent = "  " * depth
    return (
        f"{indent}{node.product_id or '':<20} {node.label:<30} {node.sub_type or '':<12} "
        f"{node.revision or '':<4} {node.sequence_number or '':<6} {node.quantity or ''}"
    )


def _print_tree(result: BOMResult) -> None:
    for view in result.product_views:
        rules = [result.revision_rules[r].name for r in view.rule_refs or [] if r in result.revision_rules]
        print(f"ProductView {view.id} (rules: {', '.join(rules) or '-'})")

        def visit(node: Occurrence, depth: int) -> None:
            print(_node_row(node, depth))
            for ref, data_set in result.data_sets_for(node):
                name = data_set.name if data_set is not None else f"Unknown DataSet id={ref}"
                print(f"{'  ' * (depth + 1)}- {name}")
            for child in node.sub_occurrences:
                visit(child, depth + 1)

        for root in view.occurrences:
            visit(root, 1)


def _to_json(result: BOMResult, base_url: Optional[str]) -> Dict[str, Any]:
    views: List[Dict[str, Any]] = []
    for view in result.product_views:
        payload = asdict(view)
        if base_url:
            # Deep links for every node whose revision carries an external uid
            for root_payload, root in zip(payload["occurrences"], view.occurrences):
                _add_links(root_payload, root, result, base_url)
        views.append(payload)
    return {
        "product_views": views,
        "diagnostics": [asdict(d) for d in result.diagnostics],
        "error": result.error,
    }


def _add_links(payload: Dict[str, Any], node: Occurrence, result: BOMResult, base_url: str) -> None:
    revision = result.get_product_revision(node.instanced_ref)
    payload["external_link"] = external_link(base_url, revision.revision_uid if revision else None)
    for child_payload, child in zip(payload["sub_occurrences"], node.sub_occurrences):
        _add_links(child_payload, child, result, base_url)


def main() -> int:
    parser = argparse.ArgumentParser(description="Print the BOM trees of a PLMXML export.")
    parser.add_argument("input", help="PLMXML file")
    parser.add_argument(
        "--base-path",
        default=None,
        help="Directory external files are resolved against (default: directory of the input)",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of a text table")
    parser.add_argument("--output", default=None, help="Write the JSON output to this file instead of stdout")
    parser.add_argument(
        "--site-settings",
        default=None,
        help="JSON site settings file (default: PLMXML_SITE_SETTINGS)",
    )
    parser.add_argument("--debug", action="store_true", help="Log every parsed element")
    args = parser.parse_args()

    load_env_file()
    settings = get_settings()
    configure_logging(debug=args.debug or settings.debug)

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Input not found: {input_path}", file=sys.stderr)
        return 2

    result = load_plmxml_file(input_path, base_path=args.base_path)
    if not result.ok or not result.product_views:
        print(result.status_message(), file=sys.stderr)
        return 1

    base_url = None
    site_settings_path = args.site_settings or settings.site_settings_path
    if site_settings_path:
        match = find_matching_site(result.sites, StaticSiteSettings.from_json_file(site_settings_path))
        if match is not None:
            base_url = match[1]

    if args.json:
        text = json.dumps(_to_json(result, base_url), ensure_ascii=False, indent=2)
        if args.output:
            Path(args.output).write_text(text, encoding="utf-8")
        else:
            print(text)
    else:
        _print_tree(result)

    for diagnostic in result.diagnostics:
        print(f"[{diagnostic.kind}] {diagnostic.message}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
