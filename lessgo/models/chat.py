from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from lessgo.core.clock import utcnow
from lessgo.core.database import Base


class Chat(Base):
    __tablename__ = "chats"

    id = Column(String(64), primary_key=True)
    listing_id = Column(String(64), ForeignKey("listings.id", ondelete="SET NULL"), nullable=True, index=True)

    # cached copy of the newest message, may lag behind the messages table
    last_message_id = Column(String(64), nullable=True)
    last_message_content = Column(Text, nullable=True)
    last_message_sender_id = Column(String(64), nullable=True)
    last_message_at = Column(DateTime, nullable=True, index=True)

    is_pinned = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False)
    unread_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    participants = relationship(
        "ChatParticipant",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="ChatParticipant.position",
    )

    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="Message.seq",
    )


class ChatParticipant(Base):
    __tablename__ = "chat_participants"

    chat_id = Column(String(64), ForeignKey("chats.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(64), primary_key=True, index=True)
    position = Column(Integer, nullable=False, default=0)

    chat = relationship("Chat", back_populates="participants")
