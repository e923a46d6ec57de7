"""
Reference decoding for PLMXML documents.

PLMXML links elements with document-local references in the form "#id"
(single reference attributes such as instancedRef or masterRef) or
space-separated lists of them (occurrenceRefs, memberRefs, rootRefs, ...).
This module normalizes both forms into bare identifiers that can be looked
up in the id-keyed entity tables.
"""

from typing import Dict, List, Optional


def strip_ref(ref: str) -> str:
    """
    Remove one leading '#' from a reference.

    Args:
        ref: Reference value, e.g. "#id26"

    Returns:
        Bare identifier, or the input unchanged if it has no leading '#'

    Examples:
        >>> strip_ref("#id26")
        'id26'
        >>> strip_ref("id26")
        'id26'
        >>> strip_ref("##id26")
        '#id26'
    """
    if ref.startswith("#"):
        return ref[1:]
    return ref


def split_ref_list(refs: Optional[str]) -> List[str]:
    """
    Split a space-separated reference list into bare identifiers.

    Args:
        refs: Attribute value, e.g. "#id1 #id2"

    Returns:
        List of identifiers in document order; empty for empty or None input

    Examples:
        >>> split_ref_list("#id1 #id2")
        ['id1', 'id2']
        >>> split_ref_list("")
        []
    """
    if not refs:
        return []
    # Doubled spaces yield empty tokens; they reference nothing
    return [strip_ref(token) for token in refs.split(" ") if token]


def optional_ref(attributes: Dict[str, str], key: str) -> Optional[str]:
    """Decode a single-reference attribute, or None when it is absent."""
    value = attributes.get(key)
    if value is None:
        return None
    return strip_ref(value)


def optional_ref_list(attributes: Dict[str, str], key: str) -> Optional[List[str]]:
    """Decode a reference-list attribute, or None when it is absent."""
    value = attributes.get(key)
    if value is None:
        return None
    return split_ref_list(value)


def local_name(name: str) -> str:
    """
    Drop a namespace from an element or attribute name.

    Handles both the ElementTree "{uri}local" form and "prefix:local".

    Examples:
        >>> local_name("{http://www.plmxml.org/Schemas/PLMXMLSchema}Occurrence")
        'Occurrence'
        >>> local_name("plm:Occurrence")
        'Occurrence'
    """
    if name.startswith("{"):
        name = name.split("}", 1)[1]
    if ":" in name:
        name = name.rsplit(":", 1)[1]
    return name


def local_attributes(attributes: Dict[str, str]) -> Dict[str, str]:
    """Return a copy of an attribute dict keyed by local attribute names."""
    return {local_name(key): value for key, value in attributes.items()}
