"""Quiz and feed constants shared across core and server layers."""

PASSING_SCORE_THRESHOLD: float = 0.70
REVEAL_DELAY_SECONDS: float = 0.8
FEED_LIMIT: int = 50
GENERAL_CATEGORY: str = "General"
DEFAULT_NAMESPACE: str = "default-app-id"

QUESTIONS_COLLECTION: str = "questions"
VERIFICATIONS_COLLECTION: str = "expert_verifications"
