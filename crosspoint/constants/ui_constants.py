"""User-facing strings used by the session controller and the web page."""

LOADING_MESSAGE: str = "Loading Crosspoint..."
EMPTY_FEED_MESSAGE: str = "No questions posted yet. Be the first!"

FEED_LOAD_FAILED_MESSAGE: str = "Failed to load questions from database."
VERIFICATION_LOAD_FAILED_MESSAGE: str = "Failed to load your expert verifications."
POST_FAILED_MESSAGE: str = (
    "Could not post question. Check network connection or database permissions."
)
VERIFY_FAILED_TEMPLATE: str = "Failed to verify expertise in {category}."

AUTH_MISCONFIGURED_MESSAGE: str = (
    "Auth error: The identity provider rejected the configured API key. "
    "Check CROSSPOINT_API_KEY and CROSSPOINT_PROJECT_ID."
)
AUTH_ANONYMOUS_DISABLED_MESSAGE: str = (
    "Auth error: Anonymous sign-in is disabled. Enable it for this project "
    "or configure CROSSPOINT_INITIAL_AUTH_TOKEN."
)
AUTH_UNAUTHORIZED_DOMAIN_MESSAGE: str = (
    "Auth error: Unauthorized domain. Add this host to CROSSPOINT_AUTHORIZED_DOMAINS."
)
AUTH_UNSUPPORTED_ENVIRONMENT_MESSAGE: str = (
    "Auth error: Session storage is not available in this environment. "
    "Try another browser or disable private mode."
)
AUTH_INVALID_TOKEN_MESSAGE: str = (
    "Auth error: Invalid custom token. Remove CROSSPOINT_INITIAL_AUTH_TOKEN to sign in "
    "anonymously, or issue a token for this project."
)
AUTH_GENERIC_TEMPLATE: str = "Auth error: {code}"
