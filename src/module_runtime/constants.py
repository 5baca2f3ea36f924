"""Global constants for the module runtime.

This module defines constants used throughout the application to avoid
hardcoded strings and make the codebase more maintainable.
"""

# Headers attached to every outbound module request
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_MODULE_ID = "X-Module-ID"
HEADER_MODULE_VERSION = "X-Module-Version"
JSON_CONTENT_TYPE = "application/json"

# Error codes carried by structured module errors
CODE_REQUEST_FAILED = "REQUEST_FAILED"
CODE_CONSTRUCTION_FAILED = "CONSTRUCTION_FAILED"
CODE_MODULE_ERROR = "MODULE_ERROR"
CODE_INITIALIZATION_FAILED = "INITIALIZATION_FAILED"

# Only idempotent reads are served from the response cache
CACHEABLE_METHODS = frozenset({"GET", "HEAD"})

HEALTH_ENDPOINT = "/health"
