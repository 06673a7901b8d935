from common.settings import BaseAppSettings


class Settings(BaseAppSettings):
    TOPIC_WA_IN: str = "alumni.whatsapp.in"
    TOPIC_WA_OUT: str = "alumni.whatsapp.out"
    GROUP_ID: str = "alumni-agent-wa"
    AGENT_NAME: str = "alumni"
    PORT: int = 8001
    # Session / memory
    SESSION_TTL_HOURS: float = 48
    SESSION_MAX_ENTRIES: int = 50_000
    # "mcp" keeps memory on the tool server, "local" keeps it in process
    MEMORY_BACKEND: str = "mcp"
    MEMORY_MAX_TURNS: int = 200
    MEMORY_CONTEXT_WINDOW: int = 10
    SEARCH_HISTORY_LIMIT: int = 20
    FOLLOW_UP_WINDOW_MINUTES: float = 5
    # Admission control
    DAILY_SEARCH_LIMIT: int = 30
    RAPID_FIRE_LIMIT: int = 10
    RAPID_FIRE_WINDOW_MINUTES: float = 5
    RAPID_FIRE_COOLDOWN_MINUTES: float = 15
    DUPLICATE_QUERY_LIMIT: int = 5
    DUPLICATE_QUERY_WINDOW_MINUTES: float = 60
    DUPLICATE_QUERY_COOLDOWN_MINUTES: float = 10
    # Optional AI override for the rule cascade
    AI_CLASSIFIER_ENABLED: bool = False
    AI_TIMEOUT_SECONDS: float = 30
    AI_MIN_CONFIDENCE: float = 0.7
    SEARCH_TIMEOUT_SECONDS: float = 20
    # Persistence retries (bounded exponential backoff)
    PERSIST_RETRY_ATTEMPTS: int = 3
    PERSIST_RETRY_MAX_WAIT: float = 2.0
    MESSAGE_DEDUP_TTL_SECONDS: float = 3600
    SHOWN_RESULTS_TTL_HOURS: float = 24


settings = Settings()
