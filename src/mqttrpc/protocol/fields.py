"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

JSONRPC = "2.0"

# Envelope members
VERSION = "jsonrpc"
ID = "id"
METHOD = "method"
PARAMS = "params"
RESULT = "result"
ERROR = "error"

# Topic family suffixes
EVENT_NOTICE = "event-notice"
SERVICE_REQUEST = "service-request"
SERVICE_RESPONSE = "service-response"

# Request id delimiter: "<client id>:<token>"
RID_SEPARATOR = ":"

# JSON-RPC error codes this library produces
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

METHOD_NOT_FOUND_MESSAGE = "Method not found"
INTERNAL_ERROR_MESSAGE = "Internal error"

# Codes used when normalizing handler failures
UNDEFINED_ERROR = 0
STRING_ERROR = -1
APPLICATION_ERROR = -100

# Default QoS levels
QOS_NOTIFY = 0
QOS_DIRECTED = 2
QOS_SERVICE = 2
