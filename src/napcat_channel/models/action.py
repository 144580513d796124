"""
OneBot v11 action models: request and response frames.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, field_validator

from napcat_channel.errors import RemoteActionFailure


class ActionRequest(BaseModel):
    action: str
    params: Optional[dict[str, Any]] = None
    echo: str


class ActionResponse(BaseModel):
    status: Literal["ok", "async", "failed"]
    retcode: int
    data: Optional[Any] = None
    echo: Optional[str] = None
    message: Optional[str] = None
    wording: Optional[str] = None

    model_config = {"extra": "allow"}

    @field_validator("echo", mode="before")
    @classmethod
    def _stringify_echo(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def raise_for_status(self, action: str) -> "ActionResponse":
        if self.status == "failed":
            details = {"message": self.message} if self.message else None
            raise RemoteActionFailure(action, self.retcode, details)
        return self

    def message_id(self) -> Optional[str]:
        if isinstance(self.data, dict):
            value = self.data.get("message_id")
            if isinstance(value, (int, str)) and not isinstance(value, bool):
                return str(value)
        return None
