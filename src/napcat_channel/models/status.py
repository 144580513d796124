"""
Per-account runtime status snapshot.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AccountSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: str = Field(alias="accountId")
    name: Optional[str] = None
    enabled: bool = True
    configured: bool = False
    running: bool = False
    connected: bool = False
    last_start_at: Optional[int] = Field(default=None, alias="lastStartAt")
    last_stop_at: Optional[int] = Field(default=None, alias="lastStopAt")
    last_connected_at: Optional[int] = Field(default=None, alias="lastConnectedAt")
    last_disconnect_at: Optional[int] = Field(default=None, alias="lastDisconnectAt")
    last_inbound_at: Optional[int] = Field(default=None, alias="lastInboundAt")
    last_outbound_at: Optional[int] = Field(default=None, alias="lastOutboundAt")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    ws_url: Optional[str] = Field(default=None, alias="wsUrl")
    http_url: Optional[str] = Field(default=None, alias="httpUrl")

    def merge(self, update: dict[str, Any]) -> "AccountSnapshot":
        """Return a copy with a partial update applied. Keys may be aliases or field names."""
        merged = self.model_dump()
        for key, value in update.items():
            merged[_FIELD_BY_ALIAS.get(key, key)] = value
        merged["account_id"] = self.account_id
        return AccountSnapshot.model_validate(merged)


_FIELD_BY_ALIAS = {
    field.alias: name for name, field in AccountSnapshot.model_fields.items() if field.alias
}
