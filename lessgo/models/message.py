from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from lessgo.core.clock import utcnow
from lessgo.core.database import Base


class Message(Base):
    __tablename__ = "messages"

    # insertion sequence, breaks timestamp ties
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, index=True, nullable=False)

    chat_id = Column(String(64), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(64), nullable=False, index=True)
    receiver_id = Column(String(64), nullable=False, default="")

    content = Column(Text, nullable=False, default="")
    message_type = Column(String(20), nullable=False, default="text")
    image_url = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    is_delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)

    chat = relationship("Chat", back_populates="messages")
