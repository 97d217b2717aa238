import asyncio
import random
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Payload model whose fields travel as camelCase"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PollState(str, Enum):
    in_progress = "InProgress"
    succeeded = "Succeeded"
    failed = "Failed"
    cancelled = "Cancelled"

    @classmethod
    def from_status(cls, raw: Optional[str]) -> "PollState":
        """Maps a remote status string onto a PollState, ignoring case"""
        value = (raw or "").strip().lower()
        if value in ("succeeded", "completed"):
            return cls.succeeded
        if value in ("failed", "faulted", "error"):
            return cls.failed
        if value in ("canceled", "cancelled"):
            return cls.cancelled
        return cls.in_progress

    @property
    def is_terminal(self) -> bool:
        return self is not PollState.in_progress


class PollingKind(str, Enum):
    async_operation = "AsyncOperation"
    location = "Location"
    provisioning_state = "ProvisioningState"
    done = "Done"


class PollingConfig(BaseModel):
    min_interval: float = Field(default=1.0, gt=0)
    initial_delay: float = 1.0
    max_delay: float = 32.0
    backoff_factor: float = 2.0
    jitter: bool = True
    honor_retry_after: bool = True

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Delay before the next status request, never below min_interval"""
        delay = min(self.initial_delay * (self.backoff_factor**attempt), self.max_delay)

        # Add random jitter between 0-20% of the delay
        if self.jitter:
            delay *= 1 + 0.2 * random.random()
        if self.honor_retry_after and retry_after is not None:
            delay = max(delay, retry_after)
        return max(delay, self.min_interval)


class Deadline(BaseModel):
    """An absolute point on the event loop clock"""

    at: float
    timeout: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        now = asyncio.get_event_loop().time()
        return cls(at=now + seconds, timeout=seconds)

    def remaining(self) -> float:
        return max(0.0, self.at - asyncio.get_event_loop().time())

    def expired(self) -> bool:
        return asyncio.get_event_loop().time() >= self.at


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: Optional[str] = None
    message: Optional[str] = None
    target: Optional[str] = None
    details: list["ErrorDetail"] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: ErrorDetail


class OperationStatus(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    error: Optional[ErrorDetail] = None
    result: Optional[Any] = None
    properties: Optional[dict] = None
    percent_complete: Optional[float] = Field(default=None, alias="percentComplete")
    start_time: Optional[str] = Field(default=None, alias="startTime")
    end_time: Optional[str] = Field(default=None, alias="endTime")

    @property
    def state(self) -> PollState:
        return PollState.from_status(self.status)


class ApiResponse(BaseModel):
    status: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, value: dict[str, str]) -> dict[str, str]:
        return {k.lower(): v for k, v in value.items()}

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def retry_after(self) -> Optional[float]:
        raw = self.header("Retry-After")
        if raw is None:
            return None
        try:
            return float(raw)
        except ValueError:
            return None

    @property
    def text(self) -> str:
        return (self.body or b"").decode("utf-8", errors="replace")


class Operation(BaseModel):
    method: str
    resource_url: str
    poll_url: Optional[str] = None
    kind: PollingKind
    state: PollState = PollState.in_progress
    payload: Optional[Any] = None
    error: Optional[ErrorDetail] = None
    polls: int = 0
