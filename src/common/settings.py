from pydantic_settings import BaseSettings, SettingsConfigDict

class BaseAppSettings(BaseSettings):
    KAFKA_BROKERS: str = "localhost:19092"
    KAFKA_ENABLED: bool = True
    MCP_BASE: str = "http://localhost:9000"
    LOG_LEVEL: str = "INFO"
    # allow unrelated env vars (e.g., AGENT_NAME) without error
    model_config = SettingsConfigDict(env_file=".env",
                                      env_file_encoding="utf-8",
                                      extra="ignore")
