"""
Static constants configuration.

Operational defaults (timeouts, TTLs, paging limits) that environment
variables may override, plus fixed protocol constants for the upstream
statement API.
"""

# =============================================================================
# OPERATIONAL DEFAULTS
# =============================================================================

# Upstream HTTP timeouts (milliseconds)
DEFAULT_CONNECT_TIMEOUT_MS = 3000
DEFAULT_READ_TIMEOUT_MS = 30000

# Status polling interval for running statements (milliseconds)
DEFAULT_STATEMENT_POLL_INTERVAL_MS = 1000

# Cache TTL (seconds)
DEFAULT_CACHE_TTL = 600  # 10 minutes

# Rows per cached page
DEFAULT_PAGE_SIZE = 500

# Bounded wait for the first missing page of a row range (milliseconds)
DEFAULT_FIRST_CHUNK_MAX_WAIT_MS = 8000
DEFAULT_FIRST_CHUNK_POLL_MS = 150

# View building guardrails: 2000 * 500 = ~1,000,000 rows when row count unknown
DEFAULT_VIEW_MAX_SCAN_PAGES = 2000
DEFAULT_VIEW_BUILD_LOG_EVERY = 25

# Tenant scope used when the caller does not supply one
DEFAULT_SCOPE = "local"

# =============================================================================
# CACHE KEY CONSTANTS
# =============================================================================

REPORT_KEY_PREFIX = "report"

# Length of the hex signature prefix that addresses a view (128 bits)
VIEW_SIGNATURE_LENGTH = 32

# =============================================================================
# UPSTREAM STATEMENT API CONSTANTS
# =============================================================================

STATEMENTS_PATH = "/api/2.0/sql/statements/"
RESULT_DISPOSITION = "EXTERNAL_LINKS"
RESULT_FORMAT = "JSON_ARRAY"

# First two bytes of every gzip member
GZIP_MAGIC = b"\x1f\x8b"
