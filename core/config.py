"""
Configuration settings for the workflow graph pipeline.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Anthropic API settings
    anthropic_api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key for Claude LLM access"
    )
    llm_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        description="Model used for clarify, plan and fix calls"
    )
    llm_base_url: str = Field(
        default="https://api.anthropic.com/v1/messages",
        description="Anthropic messages endpoint"
    )
    llm_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request timeout for LLM calls"
    )
    llm_max_tokens: int = Field(
        default=4000,
        description="Maximum tokens requested per LLM response"
    )

    # Retry policy
    llm_max_retries: int = Field(
        default=5,
        description="Transport-level attempts per LLM call (429, 5xx, connect and timeout errors)"
    )
    llm_base_backoff_seconds: float = Field(
        default=2.0,
        description="Base delay in seconds between LLM transport retries"
    )
    llm_max_backoff_seconds: float = Field(
        default=30.0,
        description="Maximum delay in seconds between LLM transport retries"
    )
    llm_max_parse_attempts: int = Field(
        default=2,
        description="Attempts per phase when the model returns unusable content"
    )
    max_fix_rounds: int = Field(
        default=2,
        description="Automatic fix rounds run by plan while errors remain"
    )
    max_tool_calls: int = Field(
        default=6,
        description="Maximum tool calls the model may make within one phase"
    )
    max_prompt_length: int = Field(
        default=50000,
        description="Longest accepted user prompt in characters"
    )

    # Fallback and compiler settings
    fallback_interval_minutes: int = Field(
        default=15,
        description="Polling interval used by the deterministic fallback workflow"
    )
    script_time_zone: str = Field(
        default="America/New_York",
        description="Time zone written to the Apps Script manifest"
    )
    catalog_path: Optional[str] = Field(
        default=None,
        description="Optional JSON file with extra apps and node types"
    )

    # Application settings
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional file that receives a copy of the logs"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Create global settings instance
settings = Settings()
