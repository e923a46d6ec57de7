"""
Constants for PLMXML ingestion.

This module defines the element names, attribute names and reserved
UserValue titles the ingestion engine dispatches on. Elements are matched by
local name only (no namespace handling).
"""

# ============================================================================
# Element names
# ============================================================================

EL_PLMXML = "PLMXML"
EL_HEADER = "Header"
EL_REVISION_RULE = "RevisionRule"
EL_SITE = "Site"

EL_PRODUCT_VIEW = "ProductView"
EL_OCCURRENCE = "Occurrence"
EL_PRODUCT_REVISION = "ProductRevision"
EL_PRODUCT = "Product"
EL_DATA_SET = "DataSet"
EL_EXTERNAL_FILE = "ExternalFile"
EL_FORM = "Form"

EL_USER_DATA = "UserData"
EL_USER_VALUE = "UserValue"
EL_ASSOCIATED_ATTACHMENT = "AssociatedAttachment"
EL_ASSOCIATED_DATA_SET = "AssociatedDataSet"
EL_APPLICATION_REF = "ApplicationRef"

# Elements that open a scope and own nested UserValue/ApplicationRef children
CONTAINER_ELEMENTS = (
    EL_PRODUCT_VIEW,
    EL_OCCURRENCE,
    EL_PRODUCT_REVISION,
    EL_PRODUCT,
    EL_DATA_SET,
    EL_EXTERNAL_FILE,
    EL_FORM,
    EL_SITE,
)

# ============================================================================
# UserData / UserValue
# ============================================================================

# UserData type that scopes its UserValues to the enclosing Occurrence
USER_DATA_ATTRIBUTES_IN_CONTEXT = "AttributesInContext"

# Occurrence UserValue titles pulled out into dedicated fields
OCCURRENCE_RESERVED_TITLES = {
    "SequenceNumber": "sequence_number",
    "Quantity": "quantity",
}

# ProductRevision UserValue titles pulled out into dedicated fields
REVISION_RESERVED_TITLES = {
    "object_string": "object_string",
    "last_mod_date": "last_mod_date",
}

# ============================================================================
# ApplicationRef
# ============================================================================

# ApplicationRef@version is the uid of the enclosing ProductRevision;
# ApplicationRef@label is the uid of the first open record of these types
APPLICATION_REF_LABEL_TARGETS = (
    EL_PRODUCT,
    EL_DATA_SET,
    EL_FORM,
)

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_NO_NAME = "(No Name)"
DEFAULT_NO_TRANSFER_CONTEXT = "(No transferContext)"

# Prefix used for synthetic ids given to elements without an id attribute
ANONYMOUS_ID_MARKER = "#anon-"

# Deep link route into the external PLM web client
EXTERNAL_LINK_ROUTE = "#/com.siemens.splm.clientfx.tcui.xrt.showObject?uid="
