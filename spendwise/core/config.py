from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    PROJECT_NAME: str = "Spendwise"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Storage backend: "dynamo" for AWS, "memory" for local runs
    STORE_BACKEND: str = Field(default="dynamo")

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_TABLE_EXPENSES: str = Field(default="spendwise-expenses")
    DYNAMO_TABLE_BUDGETS: str = Field(default="spendwise-budgets")

    # JWT Authentication (tokens are issued by the surrounding system)
    JWT_SECRET: str = Field(default="change-me")
    JWT_ALGORITHM: str = "HS256"

    # Advisory generation
    OPENAI_API_KEY: str = Field(default="")
    OPENAI_MODEL: str = Field(default="gpt-4o")
    ADVISOR_TIMEOUT_SECONDS: float = Field(default=30.0)
    ADVISOR_TEMPERATURE: float = Field(default=0.7)
    ADVISOR_MAX_TOKENS: int = Field(default=2000)
    ADVISOR_MAX_WORKERS: int = Field(default=16)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
