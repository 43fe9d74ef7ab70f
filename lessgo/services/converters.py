"""Mapping between store records (``lessgo.models``) and domain values
(``lessgo.schemas``).

Every entity type has one ``EntityMapper`` with ``to_domain`` and
``to_record``; the persistence engine drives them uniformly through
``mapper_for``.

Conventions on the way back from the store:

* unknown enum strings decay to a documented default (category ``other``,
  condition ``good``, message type ``text``, location type
  ``specific_address``); unknown badges are dropped;
* money and radius columns use ``0`` as "absent": ``original_price``,
  ``shipping_cost`` and ``delivery_radius`` read ``<= 0`` as ``None`` and
  write ``None`` as ``0``. A free-shipping cost of exactly $0 therefore
  cannot be stored; callers model it as ``shipping_cost=None``.
"""
import base64
from enum import Enum
from typing import Dict, Generic, List, Optional, Type, TypeVar, Union

from lessgo.core.log import get_logger
from lessgo.models.chat import Chat as ChatModel
from lessgo.models.chat import ChatParticipant
from lessgo.models.draft import ListingDraft
from lessgo.models.listing import Listing as ListingModel
from lessgo.models.listing_image import ListingImage
from lessgo.models.message import Message as MessageModel
from lessgo.models.user import User as UserModel
from lessgo.schemas.draft import DraftListing
from lessgo.schemas.listing import MAX_TAGS, Category, ItemCondition, Listing
from lessgo.schemas.location import Location, LocationType
from lessgo.schemas.message import Chat, Message, MessageType
from lessgo.schemas.user import Badge, User

logger = get_logger("lessgo.converters")

E = TypeVar("E", bound=Enum)
S = TypeVar("S")
M = TypeVar("M")


# ---------------------------
# scalar helpers
# ---------------------------
def enum_or_default(enum_cls: Type[E], raw: Optional[str], default: E) -> E:
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        logger.warning("Unknown %s value %r, using %s", enum_cls.__name__, raw, default.value)
        return default


def decode_amount(value: Optional[float]) -> Optional[float]:
    if value is None or value <= 0:
        return None
    return float(value)


def encode_amount(value: Optional[float]) -> float:
    if value is None or value <= 0:
        return 0.0
    return float(value)


def encode_image(image: Union[bytes, str], mime: str = "image/jpeg") -> str:
    """Storage form of an image: URLs stay references, raw bytes are inlined."""
    if isinstance(image, (bytes, bytearray)):
        return f"data:{mime};base64,{base64.b64encode(bytes(image)).decode('ascii')}"
    return image


def decode_image(ref: str) -> Optional[bytes]:
    """Bytes of an inlined image, or None for a URL reference."""
    if not ref.startswith("data:") or ";base64," not in ref:
        return None
    return base64.b64decode(ref.split(";base64,", 1)[1])


def _location_from(record) -> Optional[Location]:
    if record.location_type is None:
        return None
    return Location(
        latitude=record.latitude,
        longitude=record.longitude,
        address=record.location_address,
        city=record.location_city,
        state=record.location_state,
        zip_code=record.location_zip_code,
        location_type=enum_or_default(LocationType, record.location_type, LocationType.specific_address),
        meeting_instructions=record.meeting_instructions,
    )


def _location_into(record, location: Optional[Location]) -> None:
    if location is None:
        record.location_type = None
        record.location_address = None
        record.location_city = None
        record.location_state = None
        record.location_zip_code = None
        record.latitude = None
        record.longitude = None
        record.meeting_instructions = None
        return
    record.location_type = location.location_type.value
    record.location_address = location.address
    record.location_city = location.city
    record.location_state = location.state
    record.location_zip_code = location.zip_code
    record.latitude = location.latitude
    record.longitude = location.longitude
    record.meeting_instructions = location.meeting_instructions


# ---------------------------
# mappers
# ---------------------------
class EntityMapper(Generic[S, M]):
    schema: Type[S]
    model: Type[M]

    def to_domain(self, record: M) -> S:
        raise NotImplementedError

    def to_record(self, value: S, record: Optional[M] = None) -> M:
        raise NotImplementedError

    def key(self, value: S) -> str:
        return value.id

    @property
    def key_column(self):
        return self.model.id


class UserMapper(EntityMapper[User, UserModel]):
    schema = User
    model = UserModel

    def to_domain(self, record: UserModel) -> User:
        badges: List[Badge] = []
        for raw in record.badges or []:
            try:
                badges.append(Badge(raw))
            except ValueError:
                logger.warning("Dropping unknown badge %r on user %s", raw, record.id)
        return User(
            id=record.id,
            email=record.email or "",
            display_name=record.display_name or "",
            phone_number=record.phone_number,
            profile_image_url=record.profile_image_url,
            bio=record.bio,
            location=_location_from(record),
            is_verified=bool(record.is_verified),
            verification_date=record.verification_date,
            rating=min(max(record.rating or 0.0, 0.0), 5.0),
            total_reviews=max(record.total_reviews or 0, 0),
            badges=badges,
            date_joined=record.date_joined,
            last_active=record.last_active,
            is_blocked=bool(record.is_blocked),
            blocked_users=list(record.blocked_users or []),
        )

    def to_record(self, value: User, record: Optional[UserModel] = None) -> UserModel:
        record = record if record is not None else UserModel(id=value.id)
        record.email = value.email
        record.display_name = value.display_name
        record.phone_number = value.phone_number
        record.profile_image_url = value.profile_image_url
        record.bio = value.bio
        record.is_verified = value.is_verified
        record.verification_date = value.verification_date
        record.rating = value.rating
        record.total_reviews = value.total_reviews
        record.badges = [b.value for b in value.badges]
        record.date_joined = value.date_joined
        record.last_active = value.last_active
        record.is_blocked = value.is_blocked
        record.blocked_users = list(dict.fromkeys(value.blocked_users))
        _location_into(record, value.location)
        return record


class ListingMapper(EntityMapper[Listing, ListingModel]):
    schema = Listing
    model = ListingModel

    def to_domain(self, record: ListingModel) -> Listing:
        return Listing(
            id=record.id,
            seller_id=record.seller_id or "",
            title=record.title or "",
            description=record.description or "",
            price=max(record.price or 0.0, 0.0),
            original_price=decode_amount(record.original_price),
            category=enum_or_default(Category, record.category, Category.other),
            condition=enum_or_default(ItemCondition, record.condition, ItemCondition.good),
            images=[img.ref for img in sorted(record.images, key=lambda i: (i.sort_order, i.id or 0))],
            location=_location_from(record) or Location(),
            is_active=bool(record.is_active),
            is_sold=bool(record.is_sold),
            is_featured=bool(record.is_featured),
            is_draft=bool(record.is_draft),
            views=max(record.views or 0, 0),
            favorites=max(record.favorites or 0, 0),
            is_negotiable=bool(record.is_negotiable),
            pickup_only=bool(record.pickup_only),
            shipping_available=bool(record.shipping_available),
            shipping_cost=decode_amount(record.shipping_cost),
            delivery_radius=decode_amount(record.delivery_radius),
            quantity=max(record.quantity or 1, 1),
            brand=record.brand,
            model=record.model,
            tags=list(record.tags or [])[:MAX_TAGS],
            created_at=record.created_at,
            updated_at=record.updated_at,
            expires_at=record.expires_at,
        )

    def to_record(self, value: Listing, record: Optional[ListingModel] = None) -> ListingModel:
        record = record if record is not None else ListingModel(id=value.id)
        record.seller_id = value.seller_id
        record.title = value.title
        record.description = value.description
        record.price = value.price
        record.original_price = encode_amount(value.original_price)
        record.category = value.category.value
        record.condition = value.condition.value
        record.is_active = value.is_active
        record.is_sold = value.is_sold
        record.is_featured = value.is_featured
        record.is_draft = value.is_draft
        record.views = value.views
        record.favorites = value.favorites
        record.is_negotiable = value.is_negotiable
        record.pickup_only = value.pickup_only
        record.shipping_available = value.shipping_available
        record.shipping_cost = encode_amount(value.shipping_cost)
        record.delivery_radius = encode_amount(value.delivery_radius)
        record.quantity = value.quantity
        record.brand = value.brand
        record.model = value.model
        record.tags = list(value.tags)
        record.created_at = value.created_at
        record.updated_at = value.updated_at
        record.expires_at = value.expires_at
        _location_into(record, value.location)

        current = [img.ref for img in record.images]
        if current != list(value.images):
            # order is meaningful (index 0 is the main photo), rebuild on any change
            record.images.clear()
            for idx, ref in enumerate(value.images):
                record.images.append(ListingImage(ref=ref, sort_order=idx))
        return record


class MessageMapper(EntityMapper[Message, MessageModel]):
    schema = Message
    model = MessageModel

    def to_domain(self, record: MessageModel) -> Message:
        return Message(
            id=record.id,
            chat_id=record.chat_id,
            sender_id=record.sender_id,
            receiver_id=record.receiver_id or "",
            content=record.content or "",
            message_type=enum_or_default(MessageType, record.message_type, MessageType.text),
            timestamp=record.timestamp,
            is_delivered=bool(record.is_delivered) or bool(record.is_read),
            delivered_at=record.delivered_at,
            is_read=bool(record.is_read),
            read_at=record.read_at,
            image_url=record.image_url,
            thumbnail_url=record.thumbnail_url,
        )

    def to_record(self, value: Message, record: Optional[MessageModel] = None) -> MessageModel:
        record = record if record is not None else MessageModel(id=value.id)
        record.chat_id = value.chat_id
        record.sender_id = value.sender_id
        record.receiver_id = value.receiver_id
        record.content = value.content
        record.message_type = value.message_type.value
        record.image_url = value.image_url
        record.thumbnail_url = value.thumbnail_url
        record.timestamp = value.timestamp
        record.is_delivered = value.is_delivered
        record.delivered_at = value.delivered_at
        record.is_read = value.is_read
        record.read_at = value.read_at
        return record


class ChatMapper(EntityMapper[Chat, ChatModel]):
    schema = Chat
    model = ChatModel

    def to_domain(self, record: ChatModel) -> Chat:
        participants = [p.user_id for p in sorted(record.participants, key=lambda p: p.position)]
        last_message = None
        if record.last_message_id:
            sender = record.last_message_sender_id or ""
            last_message = Message(
                id=record.last_message_id,
                chat_id=record.id,
                sender_id=sender,
                receiver_id=next((p for p in participants if p != sender), ""),
                content=record.last_message_content or "",
                timestamp=record.last_message_at or record.updated_at,
            )
        return Chat(
            id=record.id,
            participants=participants,
            listing_id=record.listing_id,
            last_message=last_message,
            is_pinned=bool(record.is_pinned),
            is_archived=bool(record.is_archived),
            unread_count=max(record.unread_count or 0, 0),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def to_record(self, value: Chat, record: Optional[ChatModel] = None) -> ChatModel:
        record = record if record is not None else ChatModel(id=value.id)
        record.listing_id = value.listing_id
        record.is_pinned = value.is_pinned
        record.is_archived = value.is_archived
        record.unread_count = value.unread_count
        record.created_at = value.created_at
        record.updated_at = value.updated_at

        last = value.last_message
        record.last_message_id = last.id if last else None
        record.last_message_content = last.content if last else None
        record.last_message_sender_id = last.sender_id if last else None
        record.last_message_at = last.timestamp if last else None

        current = [p.user_id for p in sorted(record.participants, key=lambda p: p.position)]
        if current != list(value.participants):
            record.participants.clear()
            for idx, user_id in enumerate(dict.fromkeys(value.participants)):
                record.participants.append(ChatParticipant(user_id=user_id, position=idx))
        return record


class DraftMapper(EntityMapper[DraftListing, ListingDraft]):
    schema = DraftListing
    model = ListingDraft

    def to_domain(self, record: ListingDraft) -> DraftListing:
        payload = dict(record.payload or {})
        payload["id"] = record.id
        payload["seller_id"] = record.seller_id
        return DraftListing.model_validate(payload)

    def to_record(self, value: DraftListing, record: Optional[ListingDraft] = None) -> ListingDraft:
        record = record if record is not None else ListingDraft(id=value.id)
        record.seller_id = value.seller_id
        record.payload = value.model_dump(mode="json")
        record.created_at = value.created_at
        record.updated_at = value.updated_at
        return record


MAPPERS: Dict[type, EntityMapper] = {
    User: UserMapper(),
    Listing: ListingMapper(),
    Message: MessageMapper(),
    Chat: ChatMapper(),
    DraftListing: DraftMapper(),
}


def mapper_for(schema_type: type) -> EntityMapper:
    try:
        return MAPPERS[schema_type]
    except KeyError:
        raise TypeError(f"No store mapping for {schema_type.__name__}") from None
