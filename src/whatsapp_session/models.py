"""Data models for socket event payloads."""

from typing import Any, List, Literal, Optional, Tuple
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict


class _SocketPayload(BaseModel):
    @classmethod
    def parse_payload(cls, payload: Any):
        """Build the model from a socket payload (dict, model or plain object)."""
        if isinstance(payload, cls):
            return payload
        if isinstance(payload, dict):
            return cls.model_validate(payload)
        return cls.model_validate(payload, from_attributes=True)


class DisconnectInfo(BaseModel):
    """Why and when the last connection closed."""

    error: Optional[Any] = None
    date: Optional[datetime] = None

    model_config = ConfigDict(arbitrary_types_allowed=True, from_attributes=True)


class ConnectionUpdate(_SocketPayload):
    """Payload of the socket's ``connection.update`` event."""

    connection: Optional[Literal["connecting", "open", "close"]] = None
    last_disconnect: Optional[DisconnectInfo] = Field(default=None, alias="lastDisconnect")
    qr: Optional[str] = None
    is_new_login: Optional[bool] = Field(default=None, alias="isNewLogin")
    is_online: Optional[bool] = Field(default=None, alias="isOnline")
    received_pending_notifications: Optional[bool] = Field(
        default=None, alias="receivedPendingNotifications"
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore", from_attributes=True)

    @field_validator("last_disconnect", mode="before")
    @classmethod
    def wrap_bare_error(cls, v: Any) -> Any:
        # Some sockets hand over the exception itself
        if isinstance(v, BaseException):
            return DisconnectInfo(error=v)
        return v


class MessagesUpsert(_SocketPayload):
    """Payload of the socket's ``messages.upsert`` event."""

    type: str
    messages: List[Any] = []

    model_config = ConfigDict(extra="ignore", from_attributes=True)


class VersionInfo(BaseModel):
    """Protocol version resolved before connecting."""

    version: Tuple[int, int, int]
    is_latest: bool = False
    error: Optional[str] = None

    @property
    def label(self) -> str:
        return ".".join(str(part) for part in self.version)
