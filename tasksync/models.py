from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, FrozenSet, List, Literal, Optional

TaskSyncStatus = Literal["pending", "running", "success", "accepted", "partial", "error", "unknown"]

# Polling stops on these; pending | running | unknown keep it going
TERMINAL_STATUSES: FrozenSet[TaskSyncStatus] = frozenset({"success", "accepted", "partial", "error"})


class TaskSyncEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    record_id: str = Field(alias="recordId")
    payload: Dict[str, Any] = Field(default_factory=dict)


class TaskSyncResultEntry(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    record_id: Optional[str] = Field(default=None, alias="recordId")
    status: Optional[str] = None
    # remote systems put strings, error objects or validation lists here
    message: Any = None
    detail: Any = None
    http: Any = None  # upstream HTTP status for this record, when reported
    body: Any = None

    @field_validator("record_id", "status", mode="before")
    @classmethod
    def scalar_or_none(cls, value: Any) -> Optional[str]:
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (str, int, float)):
            return str(value)
        return None


class TaskSyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str  # one of TaskSyncStatus, or whatever the remote reported
    job_id: Optional[str] = Field(default=None, alias="jobId")
    results: List[TaskSyncResultEntry] = Field(default_factory=list)
    created_at: Any = Field(default=None, alias="createdAt")
    updated_at: Any = Field(default=None, alias="updatedAt")
    completed_at: Any = Field(default=None, alias="completedAt")


class SummaryMessage(BaseModel):
    kind: Literal["success", "pending", "failure"]
    text: str
    total: int
    success: int
    accepted: int
    error: int
    pending: int
    skipped: int = 0
    failures: List[TaskSyncResultEntry] = Field(default_factory=list)


class SyncFieldMap(BaseModel):
    """Field ids of the source table used to build entry payloads."""

    task_name: str
    assignees: str
    deadline: str
    status: str
    followers: Optional[str] = None
    remark: Optional[str] = None
    comment: Optional[str] = None


class RawRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(alias="recordId")
    fields: Dict[str, Any] = Field(default_factory=dict)


class SyncRequest(BaseModel):
    records: List[RawRecord]
    fields: SyncFieldMap


class SyncOutcome(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    job_id: Optional[str] = Field(default=None, alias="jobId")
    submitted: int
    summary: SummaryMessage
