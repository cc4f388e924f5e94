"""
Constants for the config flow engine.
Includes flow statuses, step result types, handler kinds, field types and operators.
"""

# flow instance status

FLOW_STATUS_IN_PROGRESS = "in_progress"
FLOW_STATUS_COMPLETED = "completed"
FLOW_STATUS_ABORTED = "aborted"

FLOW_STATUSES = (FLOW_STATUS_IN_PROGRESS, FLOW_STATUS_COMPLETED, FLOW_STATUS_ABORTED)
TERMINAL_FLOW_STATUSES = (FLOW_STATUS_COMPLETED, FLOW_STATUS_ABORTED)

# step result types

RESULT_TYPE_FORM = "form"
RESULT_TYPE_MENU = "menu"
RESULT_TYPE_EXTERNAL_STEP = "external_step"
RESULT_TYPE_CREATE_ENTRY = "create_entry"
RESULT_TYPE_ABORT = "abort"

RESULT_TYPES = (
    RESULT_TYPE_FORM,
    RESULT_TYPE_MENU,
    RESULT_TYPE_EXTERNAL_STEP,
    RESULT_TYPE_CREATE_ENTRY,
    RESULT_TYPE_ABORT,
)

# handler kinds

HANDLER_KIND_MANUAL = "manual"
HANDLER_KIND_DISCOVERY = "discovery"
HANDLER_KIND_OAUTH = "oauth"
HANDLER_KIND_WIZARD = "wizard"
HANDLER_KIND_HYBRID = "hybrid"
HANDLER_KIND_PROXY = "proxy"

HANDLER_KINDS = (
    HANDLER_KIND_MANUAL,
    HANDLER_KIND_DISCOVERY,
    HANDLER_KIND_OAUTH,
    HANDLER_KIND_WIZARD,
    HANDLER_KIND_HYBRID,
    HANDLER_KIND_PROXY,
)

# field schema

FIELD_TYPES = (
    "string",
    "number",
    "boolean",
    "select",
    "multiselect",
    "password",
    "url",
    "email",
    "file",
    "object",
    "array",
)

FIELD_OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "greater_than",
    "less_than",
    "in",
    "not_in",
)
STEP_OPERATORS = FIELD_OPERATORS + ("exists", "not_exists")

# step ids

STEP_USER = "user"
STEP_CONFIRM = "confirm"
MENU_FIELD = "next_step_id"

# prefixes the frontend adds to step component names
STEP_ID_PREFIXES = ("wizard_step_", "discovery_", "oauth_")

# handler context keys

CONTEXT_HA_FLOW_ID = "ha_flow_id"
CONTEXT_DEFINITION_VERSION = "definition_version"

# defaults

DEFAULT_DISCOVERY_TIMEOUT = 10  # seconds
DEFAULT_DISCOVERY_CACHE_TTL = 30  # seconds
DEFAULT_HA_TIMEOUT = 10  # seconds
DEFAULT_STALE_AFTER_HOURS = 24

DISCOVERY_PROVIDER_HOMEASSISTANT = "homeassistant"

# abort reasons

ABORT_NO_DEVICES_FOUND = "no_devices_found"
ABORT_INVALID_FLOW_RESULT = "invalid_flow_result"
ABORT_INVALID_STATE = "invalid_state"
ABORT_PROXY_RESTART_UNSUPPORTED = "proxy_restart_unsupported"

# zigbee radio types

ZIGBEE_RADIO_TYPES = {
    "znp": "ZNP (TI CC2531, CC2652)",
    "ezsp": "EZSP (Silicon Labs)",
    "deconz": "Deconz (ConBee/RaspBee)",
    "zigate": "ZIGATE",
}
