"""Centralized constants for the scheduler auth subsystem."""

# Cross-context message types - embedded handshake
REQUEST_API_VALUES = "REQUEST_API_VALUES"
API_VALUES_RESPONSE = "API_VALUES_RESPONSE"

# Same-origin message types - OAuth popup
GOOGLE_AUTH_SUCCESS = "GOOGLE_AUTH_SUCCESS"
GOOGLE_AUTH_ERROR = "GOOGLE_AUTH_ERROR"

ANY_ORIGIN = "*"

# Persisted key names (kept identical to the browser client's storage layout)
KEY_SESSION = "app_auth_user"
KEY_SECRETS = "app_api_keys"
KEY_BACKEND = "app_supabase_config"
KEY_LEGACY_OPENAI = "openai_api_key"
KEY_GOOGLE_TOKENS = "google_tokens"
KEY_GOOGLE_USER = "google_user"

SESSION_CACHE_KEYS = (KEY_SESSION, KEY_SECRETS, KEY_BACKEND, KEY_LEGACY_OPENAI)
TOKEN_CACHE_KEYS = (KEY_GOOGLE_TOKENS, KEY_GOOGLE_USER)

# Secret bundle names
OPENAI_API_KEY = "OPENAI_API_KEY"
CLAUDE_API_KEY = "CLAUDE_API_KEY"
GEMINI_API_KEY = "GEMINI_API_KEY"
REPLICATE_API_KEY = "REPLICATE_API_KEY"

HANDSHAKE_SECRET_NAMES = (
    OPENAI_API_KEY,
    CLAUDE_API_KEY,
    GEMINI_API_KEY,
    REPLICATE_API_KEY,
)

# Remote store tables
TABLE_USERS_LOGIN = "users_login"
TABLE_SECRETS = "secrets"
TABLE_AUTH_TOKENS = "auth_tokens"

# Timing
HANDSHAKE_TIMEOUT_SECONDS = 2.0
POPUP_POLL_INTERVAL_SECONDS = 1.0
TOKEN_EXPIRY_BUFFER_MILLIS = 5 * 60 * 1000
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0

# Google OAuth endpoints
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Placeholder values shipped in the example environment file
CLIENT_ID_PLACEHOLDER = "your_google_client_id_here"
CLIENT_SECRET_PLACEHOLDER = "your_google_client_secret_here"

GOOGLE_PROVIDER = "google"
