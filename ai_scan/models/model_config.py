"""Processor configuration."""

from pydantic import BaseModel, Field, field_validator

from ai_scan.consts import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MINI_BATCH_SIZE,
    DEFAULT_TIMEOUT_SECONDS,
    MAX_MINI_BATCH_SIZE,
    MIN_MINI_BATCH_SIZE,
)


def clamp_mini_batch_size(size: int) -> int:
    """Clamp a requested mini-batch size into the supported range."""
    return max(MIN_MINI_BATCH_SIZE, min(MAX_MINI_BATCH_SIZE, size))


class ProcessorConfig(BaseModel):
    """Recognized run options.

    mini_batch_size is clamped rather than rejected, so any integer is accepted.
    """

    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1, description="Jobs per batch")
    mini_batch_size: int = Field(
        default=DEFAULT_MINI_BATCH_SIZE, description="Jobs per agent invocation (1-10)"
    )
    delay_seconds: float = Field(
        default=DEFAULT_DELAY_SECONDS, ge=0.0, description="Pause between mini-batches"
    )
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0.0)
    verbose: bool = Field(default=False, description="Log generated prompts")

    @field_validator("mini_batch_size")
    @classmethod
    def clamp_mini_batch(cls, value: int) -> int:
        """Force mini_batch_size into [1, 10]."""
        return clamp_mini_batch_size(value)
