from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from lessgo.core.clock import utcnow
from lessgo.schemas.listing import Listing
from lessgo.schemas.user import User


class MessageType(str, Enum):
    text = "text"
    image = "image"
    offer = "offer"
    location = "location"

    @property
    def display_name(self) -> str:
        return self.value.title()


class DeliveryState(str, Enum):
    sent = "sent"
    delivered = "delivered"
    read = "read"


class Message(BaseModel):
    id: str
    chat_id: str
    sender_id: str
    receiver_id: str = ""
    content: str
    message_type: MessageType = MessageType.text
    timestamp: datetime = Field(default_factory=utcnow)

    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    is_read: bool = False
    read_at: Optional[datetime] = None

    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def delivery_state(self) -> DeliveryState:
        if self.is_read:
            return DeliveryState.read
        if self.is_delivered:
            return DeliveryState.delivered
        return DeliveryState.sent


class Chat(BaseModel):
    id: str
    participants: List[str]
    listing_id: Optional[str] = None
    last_message: Optional[Message] = None

    is_pinned: bool = False
    is_archived: bool = False
    unread_count: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # in memory only until the first message is sent
    is_temporary: bool = False

    def other_participant_id(self, user_id: str) -> Optional[str]:
        for participant in self.participants:
            if participant != user_id:
                return participant
        return None


class ChatPreview(BaseModel):
    """Display projection of a chat for one user. Never stored."""

    chat: Chat
    other_participant: User
    listing: Optional[Listing] = None

    @property
    def id(self) -> str:
        return self.chat.id

    @property
    def participants(self) -> List[str]:
        return self.chat.participants

    @property
    def last_message(self) -> Optional[Message]:
        return self.chat.last_message

    @property
    def unread_count(self) -> int:
        return self.chat.unread_count

    @property
    def is_pinned(self) -> bool:
        return self.chat.is_pinned

    @property
    def is_archived(self) -> bool:
        return self.chat.is_archived

    @property
    def updated_at(self) -> datetime:
        return self.chat.updated_at


class OfferStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"

    @property
    def display_name(self) -> str:
        return self.value.title()


class Offer(BaseModel):
    id: str
    chat_id: str
    sender_id: str
    receiver_id: str
    amount: float = Field(gt=0)
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    status: OfferStatus = OfferStatus.pending

    @property
    def formatted_amount(self) -> str:
        return f"${self.amount:.2f}"
