"""Schemas for number analysis results and per-check outcomes.

NumberProperties and ErrorResponse are the wire-level models returned by the
HTTP layer. CheckOutcome is the internal result type each concurrent check
hands back to the orchestrator instead of raising across the thread boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

# Upper bound of the accepted input range (64-bit signed)
INT64_MAX = 2**63 - 1
INT64_MIN = -(2**63)


class Parity(str, Enum):
    """Textual parity label."""
    EVEN = "Even"
    ODD = "Odd"


class CheckName(str, Enum):
    """The four independent property checks, in fold order."""
    EVEN = "even"
    PRIME = "prime"
    PERFECT_SQUARE = "perfect_square"
    PARITY = "parity"


class CheckStatus(str, Enum):
    """Terminal states of a dispatched check."""
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CheckOutcome:
    """Terminal outcome of a single concurrent check."""

    name: CheckName
    status: CheckStatus
    value: Any = None
    error: Optional[BaseException] = None
    duration_ms: int = 0


class NumberProperties(BaseModel):
    """Properties computed for one analyzed number.

    Built once after all four checks complete and never mutated.
    Serializes with camelCase keys (isEven, isPrime, isPerfectSquare).
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    number: int = Field(description="The number that was analyzed")
    is_even: bool
    is_prime: bool
    is_perfect_square: bool
    parity: Parity

    @model_validator(mode="after")
    def validate_parity_agrees(self) -> "NumberProperties":
        """is_even and parity derive from the same remainder and must agree."""
        if self.is_even != (self.parity == Parity.EVEN):
            raise ValueError(
                f"is_even={self.is_even} disagrees with parity={self.parity.value} "
                f"for number {self.number}"
            )
        return self


class ErrorResponse(BaseModel):
    """Error body returned by the HTTP layer."""

    error: str = "Analysis failed"
    details: str = ""
    input: str
