"""Data models for the AIS stream relay."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ais_stream_server.buffer import MessageRingBuffer
from ais_stream_server.errors import ValidationError

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

Coordinate = tuple[float, float]
BoundingBox = tuple[Coordinate, Coordinate]


def _mmsi_to_string(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return value


class ConnectionStatus(str, Enum):
    """Lifecycle states of an upstream stream connection."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class SubscriptionConfig(BaseModel):
    """
    Subscription parameters sent to AIS Stream in the handshake.

    Accepts both camelCase keys and the PascalCase keys of the AIS Stream
    wire format.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    bounding_boxes: list[BoundingBox] = Field(
        min_length=1,
        validation_alias=AliasChoices("boundingBoxes", "BoundingBoxes", "bounding_boxes"),
    )
    filters_ship_mmsi: Optional[list[str]] = Field(
        default=None,
        validation_alias=AliasChoices("filtersShipMMSI", "FiltersShipMMSI", "filters_ship_mmsi"),
    )
    filter_message_types: Optional[list[str]] = Field(
        default=None,
        validation_alias=AliasChoices(
            "filterMessageTypes", "FilterMessageTypes", "filter_message_types"
        ),
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("apiKey", "APIKey", "api_key"),
    )

    @field_validator("bounding_boxes")
    @classmethod
    def _check_coordinates(cls, boxes: list[BoundingBox]) -> list[BoundingBox]:
        for box in boxes:
            for lat, lng in box:
                if not -90.0 <= lat <= 90.0:
                    raise ValueError(f"latitude {lat} out of range [-90, 90]")
                if not -180.0 <= lng <= 180.0:
                    raise ValueError(f"longitude {lng} out of range [-180, 180]")
        return boxes

    @field_validator("filters_ship_mmsi", mode="before")
    @classmethod
    def _mmsi_as_strings(cls, value: Any) -> Any:
        # MMSIs are often typed as numbers by clients; AIS Stream expects strings.
        # Booleans and fractional floats are left alone so validation rejects them.
        if isinstance(value, list):
            return [_mmsi_to_string(v) for v in value]
        return value

    @classmethod
    def parse(cls, data: Any) -> "SubscriptionConfig":
        """
        Validate a client-supplied subscription config.

        Raises:
            ValidationError: If bounding boxes are missing or any field is malformed.
        """
        if not isinstance(data, dict):
            raise ValidationError("Bounding boxes are required")
        if not any(data.get(key) for key in ("boundingBoxes", "BoundingBoxes", "bounding_boxes")):
            raise ValidationError("Bounding boxes are required")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid subscription config: {details}") from e

    def to_handshake(self, api_key: str) -> dict[str, Any]:
        """Build the AIS Stream subscription message, omitting unset filters."""
        message: dict[str, Any] = {
            "APIKey": api_key,
            "BoundingBoxes": [[list(corner) for corner in box] for box in self.bounding_boxes],
        }
        if self.filters_ship_mmsi is not None:
            message["FiltersShipMMSI"] = self.filters_ship_mmsi
        if self.filter_message_types is not None:
            message["FilterMessageTypes"] = self.filter_message_types
        return message


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class ConnectionRecord:
    """State of one upstream AIS Stream session."""

    api_key: str = field(default="", repr=False)
    buffer_capacity: int = field(default=100, repr=False)
    id: str = field(default_factory=lambda: str(uuid4()))
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    websocket: Optional["ClientConnection"] = field(default=None, repr=False)
    message_count: int = 0
    recent_messages: MessageRingBuffer = field(init=False, repr=False)
    last_message_at: Optional[datetime] = None
    started_at: datetime = field(default_factory=_utcnow)
    last_error: Optional[str] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.recent_messages = MessageRingBuffer(self.buffer_capacity)

    def record_message(self, message: Any) -> None:
        """Count and buffer a successfully decoded inbound message."""
        self.message_count += 1
        self.recent_messages.append(message)
        self.last_message_at = _utcnow()

    def mark_connected(self, websocket: "ClientConnection") -> None:
        self.websocket = websocket
        self.status = ConnectionStatus.CONNECTED

    def mark_subscribed(self) -> None:
        self.status = ConnectionStatus.SUBSCRIBED

    def mark_disconnected(self) -> None:
        self.websocket = None
        if self.status != ConnectionStatus.ERROR:
            self.status = ConnectionStatus.DISCONNECTED

    def mark_error(self, error: BaseException | str) -> None:
        """Record a transport failure."""
        if isinstance(error, BaseException):
            error = str(error) or type(error).__name__
        self.status = ConnectionStatus.ERROR
        self.last_error = error

    def to_summary(self) -> dict[str, Any]:
        """Convert to a summary without message bodies."""
        return {
            "id": self.id,
            "status": self.status.value,
            "messageCount": self.message_count,
            "lastMessage": _isoformat(self.last_message_at),
            "startTime": _isoformat(self.started_at),
            "error": self.last_error,
        }

    def to_dict(self, recent: int = 10) -> dict[str, Any]:
        """Convert to a full snapshot including the last ``recent`` messages."""
        data = self.to_summary()
        data["recentMessages"] = self.recent_messages.snapshot(recent)
        return data
