"""Settings for the responder, loaded from the environment.

``ResponderConfig`` is resolved once when the application starts
(:meth:`ResponderConfig.from_env` or a plain ``ResponderConfig()``) and
passed to :class:`~responder.runner.Responder`. The agent loop and the
provider only ever see the resolved values.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = "gpt-4o"
MAX_TOOL_CALL_STEPS = 5


class ResponderConfig(BaseSettings):
    """Application settings for a Responder.

    Args:
        api_key: Key for the completion provider (``OPENAI_API_KEY``).
        base_url: Alternative endpoint for OpenAI-compatible servers
            (``OPENAI_BASE_URL``).
        default_model: Model used when a run does not name one
            (``CHATGPT_DEFAULT_MODEL``).
        max_tool_call_steps: Default bound on tool-calling rounds
            (``RESPONDER_MAX_TOOL_CALL_STEPS``).
        timeout: Request timeout in seconds.
        max_retries: Retries performed by the provider client.
    """

    api_key: str | None = Field(
        default=None, validation_alias="OPENAI_API_KEY"
    )
    base_url: str | None = Field(
        default=None, validation_alias="OPENAI_BASE_URL"
    )
    default_model: str = Field(
        default=DEFAULT_MODEL, validation_alias="CHATGPT_DEFAULT_MODEL"
    )
    max_tool_call_steps: int = Field(
        default=MAX_TOOL_CALL_STEPS,
        ge=0,
        validation_alias="RESPONDER_MAX_TOOL_CALL_STEPS",
    )
    timeout: float = 600.0
    max_retries: int = 5

    model_config = SettingsConfigDict(
        env_prefix="RESPONDER_",
        populate_by_name=True,
        extra="ignore",
    )

    @classmethod
    def from_env(cls) -> "ResponderConfig":
        """Resolve every setting from the process environment."""
        return cls()
