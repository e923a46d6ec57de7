"""
Non-fatal diagnostics collected while parsing and linking a PLMXML document.

Unresolvable references, cycles and missing identifiers do not abort a parse.
They are recorded here so malformed exports can be debugged, and the affected
node simply lacks the missing child or join.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from ..utils.logging import get_logger

logger = get_logger(__name__)


# Diagnostic kinds
MISSING_ID = "missing_id"
DUPLICATE_ID = "duplicate_id"
UNRESOLVED_ROOT = "unresolved_root"
UNRESOLVED_OCCURRENCE = "unresolved_occurrence"
UNRESOLVED_REVISION = "unresolved_revision"
UNRESOLVED_PRODUCT = "unresolved_product"
UNRESOLVED_DATASET = "unresolved_dataset"
UNRESOLVED_FILE = "unresolved_file"
UNRESOLVED_ATTACHMENT = "unresolved_attachment"
UNRESOLVED_FORM = "unresolved_form"
CYCLE = "cycle"


@dataclass(frozen=True)
class Diagnostic:
    """
    A single non-fatal problem.

    Attributes:
        kind: One of the module-level kind constants
        message: Human readable description
        ref: The offending id or reference, if any
        owner: Id of the record that holds the reference, if any
    """

    kind: str
    message: str
    ref: Optional[str] = None
    owner: Optional[str] = None


@dataclass
class Diagnostics:
    """Ordered list of diagnostics for one parse."""

    items: List[Diagnostic] = field(default_factory=list)

    def add(
        self,
        kind: str,
        message: str,
        ref: Optional[str] = None,
        owner: Optional[str] = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(kind=kind, message=message, ref=ref, owner=owner)
        self.items.append(diagnostic)
        logger.debug(f"[{kind}] {message}")
        return diagnostic

    def of_kind(self, kind: str) -> List[Diagnostic]:
        return [d for d in self.items if d.kind == kind]

    def refs(self, kind: str) -> List[Optional[str]]:
        return [d.ref for d in self.items if d.kind == kind]

    def clear(self) -> None:
        self.items.clear()

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)
