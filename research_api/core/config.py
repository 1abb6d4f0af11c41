from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Empty key means no backend: every turn takes the offline paths
    ANTHROPIC_API_KEY: str = ""

    CLASSIFIER_MODEL: str = "claude-3-haiku-20240307"
    GENERATION_MODEL: str = "claude-sonnet-4-5"
    TITLE_MODEL: str = "claude-3-haiku-20240307"

    CLASSIFIER_MAX_TOKENS: int = 1000
    SURVEY_MAX_TOKENS: int = 2000
    COMPARISON_MAX_TOKENS: int = 3000
    FOCUS_GROUP_MAX_TOKENS: int = 3000
    TITLE_MAX_TOKENS: int = 30

    # Applied to every outbound backend call
    BACKEND_DEADLINE_SECONDS: float = 8.0

    DEFAULT_SAMPLE_SIZE: int = 500
    DEFAULT_PARTICIPANT_COUNT: int = 12

    LOG_LEVEL: str = "INFO"

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
