"""Chat aggregation: previews, temporary chats, unread counts, receipts.

A chat started from "message this seller" lives only in this service until
its first message is sent; then it is written to the store under a fresh id
and the caller's ``on_chat_created`` callback receives the durable chat.

``unread_count`` on a stored chat counts messages from the other
participant that arrived while the chat was not the open one, as seen by
the identity this service acts for.
"""
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from lessgo.core.clock import utcnow
from lessgo.core.errors import ChatError, PersistenceError
from lessgo.core.identity import Identity
from lessgo.core.log import get_logger
from lessgo.models.chat import Chat as ChatModel
from lessgo.models.message import Message as MessageModel
from lessgo.schemas.listing import Listing
from lessgo.schemas.message import Chat, ChatPreview, Message, MessageType
from lessgo.schemas.user import User
from lessgo.services.converters import encode_image
from lessgo.services.persistence import PersistenceEngine
from lessgo.services.queries import ChatFilter, MessageFilter, Sort

logger = get_logger("lessgo.chats")

TEMP_PREFIX = "temp-"

ChatCreated = Callable[[Chat], None]


def _new_id() -> str:
    return str(uuid.uuid4())


def _recency(preview: ChatPreview) -> datetime:
    last = preview.last_message
    return last.timestamp if last is not None else preview.updated_at


class ChatService:
    def __init__(
        self,
        engine: PersistenceEngine,
        identity: Identity,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = _new_id,
        image_mime: str = "image/jpeg",
    ):
        self.engine = engine
        self.identity = identity
        self.clock = clock
        self.id_factory = id_factory
        self.image_mime = image_mime

        self.active_chat_id: Optional[str] = None
        self._temporary: Dict[str, Chat] = {}
        # temporary id -> durable id, once materialized
        self._materialized: Dict[str, str] = {}
        # durable id reserved for a temporary chat whose first send is in flight
        self._reserved: Dict[str, str] = {}

    # ---------------------------
    # helpers
    # ---------------------------
    def resolve_chat_id(self, chat_id: str) -> str:
        return self._materialized.get(chat_id, chat_id)

    def is_temporary(self, chat_id: str) -> bool:
        return chat_id in self._temporary

    @staticmethod
    def _check_participants(participants: Sequence[str]) -> List[str]:
        unique = list(dict.fromkeys(p for p in participants if p))
        if len(unique) != 2:
            raise ChatError("A chat needs exactly two distinct participants")
        return unique

    def _require_chat(self, chat_id: str) -> Chat:
        chat = self.engine.fetch_by_id(Chat, chat_id)
        if chat is None:
            raise ChatError(f"Unknown chat {chat_id}")
        return chat

    def _counts_as_unread(self, chat_id: str, message: Message) -> bool:
        return message.sender_id != self.identity.user_id and chat_id != self.active_chat_id

    # ---------------------------
    # chat lifecycle
    # ---------------------------
    def start_temporary_chat(self, participants: Sequence[str], listing_id: Optional[str] = None) -> Chat:
        """In-memory chat that is only stored once its first message is sent."""
        members = self._check_participants(participants)
        now = self.clock()
        chat = Chat(
            id=f"{TEMP_PREFIX}{self.id_factory()}",
            participants=members,
            listing_id=listing_id,
            created_at=now,
            updated_at=now,
            is_temporary=True,
        )
        self._temporary[chat.id] = chat
        logger.debug("Started temporary chat %s for listing %s", chat.id, listing_id)
        return chat

    def find_or_start_chat(self, participants: Sequence[str], listing_id: Optional[str] = None) -> Chat:
        """Existing chat between these users about this listing, or a temporary one."""
        members = self._check_participants(participants)
        stored = self.engine.fetch_filtered(
            Chat, ChatFilter(participant_id=members[0], listing_id=listing_id)
        )
        for chat in stored:
            if set(chat.participants) == set(members) and chat.listing_id == listing_id:
                return chat
        for chat in self._temporary.values():
            if set(chat.participants) == set(members) and chat.listing_id == listing_id:
                return chat
        return self.start_temporary_chat(members, listing_id)

    def create_chat(self, participants: Sequence[str], listing_id: Optional[str] = None) -> Chat:
        """Eager creation: the chat is stored right away."""
        members = self._check_participants(participants)
        now = self.clock()
        chat = Chat(
            id=self.id_factory(),
            participants=members,
            listing_id=listing_id,
            created_at=now,
            updated_at=now,
        )
        stored = self.engine.insert(chat)
        logger.info("Created chat %s", stored.id)
        return stored

    def toggle_pin(self, chat_id: str) -> Chat:
        return self._flip(chat_id, "is_pinned")

    def toggle_archive(self, chat_id: str) -> Chat:
        return self._flip(chat_id, "is_archived")

    def _flip(self, chat_id: str, flag: str) -> Chat:
        temp = self._temporary.get(chat_id)
        if temp is not None:
            setattr(temp, flag, not getattr(temp, flag))
            return temp

        def change(chat: Chat) -> None:
            setattr(chat, flag, not getattr(chat, flag))

        updated = self.engine.modify(Chat, self.resolve_chat_id(chat_id), change)
        if updated is None:
            raise ChatError(f"Unknown chat {chat_id}")
        return updated

    def delete_chat(self, chat_id: str) -> bool:
        """Delete a chat and all of its messages."""
        if self._temporary.pop(chat_id, None) is not None:
            self._reserved.pop(chat_id, None)
            return True
        durable = self.resolve_chat_id(chat_id)
        if self.active_chat_id == durable:
            self.active_chat_id = None
        deleted = self.engine.delete_by_id(Chat, durable)
        if deleted:
            logger.info("Deleted chat %s", durable)
        return deleted

    # ---------------------------
    # active chat
    # ---------------------------
    def open_chat(self, chat_id: str) -> None:
        """Make ``chat_id`` the chat on screen; its unread messages become read."""
        durable = self.resolve_chat_id(chat_id)
        self.active_chat_id = durable
        if durable not in self._temporary:
            self.mark_read(durable)

    def close_chat(self) -> None:
        self.active_chat_id = None

    # ---------------------------
    # messages
    # ---------------------------
    def messages(self, chat_id: str) -> List[Message]:
        """Messages oldest first; equal timestamps keep insertion order."""
        durable = self.resolve_chat_id(chat_id)
        if durable in self._temporary:
            return []
        return self.engine.fetch_filtered(Message, MessageFilter(chat_id=durable), Sort("timestamp"))

    def send_message(
        self,
        chat_id: str,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: MessageType = MessageType.text,
        image_url: Optional[str] = None,
        on_chat_created: Optional[ChatCreated] = None,
        message_id: Optional[str] = None,
    ) -> Message:
        """Store a message and refresh the chat's cached last message.

        Pass ``message_id`` to make a retry after ``PersistenceError`` land on
        the same record.
        """
        if message_type == MessageType.text and not content.strip():
            raise ChatError("Message content cannot be empty")

        durable = self.resolve_chat_id(chat_id)
        temp = self._temporary.get(durable)
        participants = temp.participants if temp is not None else self._require_chat(durable).participants
        if sender_id not in participants:
            raise ChatError(f"{sender_id} is not a participant of chat {chat_id}")

        now = self.clock()
        message = Message(
            id=message_id or self.id_factory(),
            chat_id=durable,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            message_type=message_type,
            image_url=image_url,
            timestamp=now,
        )

        if temp is not None:
            return self._materialize(temp, message, on_chat_created)

        with self.engine.transaction() as tx:
            stored = tx.insert(message)
            tx.modify(Chat, durable, lambda chat: self._apply_last_message(chat, stored))
        return stored

    def _materialize(self, temp: Chat, message: Message, on_chat_created: Optional[ChatCreated]) -> Message:
        # the durable id is fixed before writing so a retried send reuses it
        durable_id = self._reserved.setdefault(temp.id, self.id_factory())
        message = message.model_copy(update={"chat_id": durable_id})
        chat = temp.model_copy(
            update={
                "id": durable_id,
                "is_temporary": False,
                "created_at": message.timestamp,
                "updated_at": message.timestamp,
                "unread_count": 0,
            }
        )
        self._apply_last_message(chat, message)
        if self.active_chat_id == temp.id:
            chat.unread_count = 0

        # nothing is stored unless both the chat and its first message are
        with self.engine.transaction() as tx:
            tx.insert(chat)
            stored = tx.insert(message)

        del self._temporary[temp.id]
        del self._reserved[temp.id]
        self._materialized[temp.id] = durable_id
        if self.active_chat_id == temp.id:
            self.active_chat_id = durable_id
        logger.info("Materialized temporary chat %s as %s", temp.id, durable_id)

        if on_chat_created is not None:
            on_chat_created(self.engine.fetch_by_id(Chat, durable_id) or chat)
        return stored

    def _apply_last_message(self, chat: Chat, message: Message) -> None:
        chat.last_message = message
        chat.updated_at = message.timestamp
        if self._counts_as_unread(chat.id, message):
            chat.unread_count += 1

    def send_image(
        self,
        chat_id: str,
        sender_id: str,
        receiver_id: str,
        image: Union[bytes, str],
        caption: str = "",
        on_chat_created: Optional[ChatCreated] = None,
    ) -> Message:
        """Send a photo given as raw bytes (inlined) or as a URL."""
        return self.send_message(
            chat_id,
            sender_id,
            receiver_id,
            caption or "Photo",
            message_type=MessageType.image,
            image_url=encode_image(image, self.image_mime),
            on_chat_created=on_chat_created,
        )

    def delete_message(self, message_id: str) -> bool:
        message = self.engine.fetch_by_id(Message, message_id)
        if message is None:
            return False
        self.engine.delete_by_id(Message, message_id)

        remaining = self.messages(message.chat_id)
        newest = remaining[-1] if remaining else None

        def change(chat: Chat) -> None:
            if chat.last_message is not None and chat.last_message.id == message_id:
                chat.last_message = newest

        self.engine.modify(Chat, message.chat_id, change)
        logger.info("Deleted message %s from chat %s", message_id, message.chat_id)
        return True

    # ---------------------------
    # read state and receipts
    # ---------------------------
    def mark_read(self, chat_id: str) -> int:
        """Zero the unread count and stamp read receipts on the other side's messages.

        Returns the number of messages that became read.
        """
        durable = self.resolve_chat_id(chat_id)
        if durable in self._temporary:
            return 0
        now = self.clock()
        try:
            with self.engine.store.session() as db:
                result = db.execute(
                    update(MessageModel)
                    .where(
                        MessageModel.chat_id == durable,
                        MessageModel.sender_id != self.identity.user_id,
                        MessageModel.is_read.is_(False),
                    )
                    .values(
                        is_read=True,
                        read_at=now,
                        is_delivered=True,
                        delivered_at=func.coalesce(MessageModel.delivered_at, now),
                    )
                    .execution_options(synchronize_session=False)
                )
                db.execute(
                    update(ChatModel)
                    .where(ChatModel.id == durable)
                    .values(unread_count=0)
                    .execution_options(synchronize_session=False)
                )
                marked = result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error("Error marking chat %s read: %s", durable, e)
            raise PersistenceError(f"Could not mark chat {durable} as read") from e
        logger.debug("Marked %d messages read in chat %s", marked, durable)
        return marked

    def mark_delivered(self, message_id: str) -> Optional[Message]:
        now = self.clock()

        def change(message: Message) -> None:
            if not message.is_delivered:
                message.is_delivered = True
                message.delivered_at = now

        return self.engine.modify(Message, message_id, change)

    def mark_message_read(self, message_id: str) -> Optional[Message]:
        now = self.clock()

        def change(message: Message) -> None:
            if not message.is_delivered:
                message.is_delivered = True
                message.delivered_at = now
            if not message.is_read:
                message.is_read = True
                message.read_at = now

        return self.engine.modify(Message, message_id, change)

    def simulate_delivery(self, message_id: str, read: bool = True) -> Optional[Message]:
        """Stand-in for transport acknowledgements: sent, then delivered, then read."""
        message = self.mark_delivered(message_id)
        if message is not None and read:
            message = self.mark_message_read(message_id)
        return message

    # ---------------------------
    # previews
    # ---------------------------
    def list_chat_previews(self, user_id: Optional[str] = None, include_archived: bool = False) -> List[ChatPreview]:
        """Previews for ``user_id``: pinned first, then most recent activity."""
        user_id = user_id or self.identity.user_id
        chats = self.engine.fetch_filtered(
            Chat,
            ChatFilter(participant_id=user_id, archived=None if include_archived else False),
        )

        users: Dict[str, Optional[User]] = {}
        listings: Dict[str, Optional[Listing]] = {}
        previews = []
        for chat in chats:
            if len(chat.participants) < 2:
                logger.warning("Skipping chat %s with %d participant(s)", chat.id, len(chat.participants))
                continue
            other_id = chat.other_participant_id(user_id)
            if other_id not in users:
                users[other_id] = self.engine.fetch_by_id(User, other_id)
            other = users[other_id] or User(id=other_id, display_name="Unknown User")

            listing = None
            if chat.listing_id:
                if chat.listing_id not in listings:
                    listings[chat.listing_id] = self.engine.fetch_by_id(Listing, chat.listing_id)
                listing = listings[chat.listing_id]
            previews.append(ChatPreview(chat=chat, other_participant=other, listing=listing))

        previews.sort(key=lambda p: p.id)
        previews.sort(key=_recency, reverse=True)
        previews.sort(key=lambda p: not p.is_pinned)
        return previews

    def search_previews(self, text: str, user_id: Optional[str] = None, include_archived: bool = False) -> List[ChatPreview]:
        previews = self.list_chat_previews(user_id, include_archived)
        needle = text.strip().lower()
        if not needle:
            return previews

        def matches(preview: ChatPreview) -> bool:
            haystack = [preview.other_participant.display_name]
            if preview.listing is not None:
                haystack.append(preview.listing.title)
            if preview.last_message is not None:
                haystack.append(preview.last_message.content)
            return any(needle in value.lower() for value in haystack if value)

        return [p for p in previews if matches(p)]

    def total_unread(self, user_id: Optional[str] = None) -> int:
        return sum(p.unread_count for p in self.list_chat_previews(user_id, include_archived=True))
