from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import String, cast, func, inspect, or_

from lessgo.models.chat import ChatParticipant
from lessgo.schemas.listing import Category


@dataclass(frozen=True)
class Sort:
    """Caller-chosen ordering. The primary key is always appended as tie-break."""

    field: str
    descending: bool = False

    def clauses(self, model) -> list:
        column = getattr(model, self.field, None)
        if column is None:
            raise ValueError(f"{model.__name__} has no sortable field {self.field!r}")
        primary = column.desc() if self.descending else column.asc()
        ties = [pk.asc() for pk in inspect(model).primary_key if pk.key != self.field]
        return [primary, *ties]


class QueryFilter(BaseModel):
    ids: Optional[List[str]] = None

    def clauses(self, model) -> list:
        conds = []
        if self.ids is not None:
            conds.append(model.id.in_(self.ids))
        return conds


class ListingFilter(QueryFilter):
    seller_id: Optional[str] = None
    category: Optional[Category] = None
    available_only: bool = False
    exclude_drafts: bool = False
    featured_only: bool = False
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    search_text: Optional[str] = None

    def clauses(self, model) -> list:
        conds = super().clauses(model)
        if self.seller_id is not None:
            conds.append(model.seller_id == self.seller_id)
        if self.category is not None:
            conds.append(model.category == self.category.value)
        if self.available_only:
            conds.append(model.is_active.is_(True))
            conds.append(model.is_sold.is_(False))
        if self.exclude_drafts:
            conds.append(model.is_draft.is_(False))
        if self.featured_only:
            conds.append(model.is_featured.is_(True))
        if self.min_price is not None:
            conds.append(model.price >= self.min_price)
        if self.max_price is not None:
            conds.append(model.price <= self.max_price)
        text = (self.search_text or "").strip()
        if text:
            conds.append(
                or_(
                    model.title.icontains(text, autoescape=True),
                    model.description.icontains(text, autoescape=True),
                    cast(model.tags, String).icontains(text, autoescape=True),
                )
            )
        return conds


class MessageFilter(QueryFilter):
    chat_id: Optional[str] = None
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None
    unread_only: bool = False

    def clauses(self, model) -> list:
        conds = super().clauses(model)
        if self.chat_id is not None:
            conds.append(model.chat_id == self.chat_id)
        if self.sender_id is not None:
            conds.append(model.sender_id == self.sender_id)
        if self.receiver_id is not None:
            conds.append(model.receiver_id == self.receiver_id)
        if self.unread_only:
            conds.append(model.is_read.is_(False))
        return conds


class ChatFilter(QueryFilter):
    participant_id: Optional[str] = None
    listing_id: Optional[str] = None
    archived: Optional[bool] = None
    pinned: Optional[bool] = None

    def clauses(self, model) -> list:
        conds = super().clauses(model)
        if self.participant_id is not None:
            conds.append(model.participants.any(ChatParticipant.user_id == self.participant_id))
        if self.listing_id is not None:
            conds.append(model.listing_id == self.listing_id)
        if self.archived is not None:
            conds.append(model.is_archived.is_(self.archived))
        if self.pinned is not None:
            conds.append(model.is_pinned.is_(self.pinned))
        return conds


class UserFilter(QueryFilter):
    name_contains: Optional[str] = None
    email: Optional[str] = None

    def clauses(self, model) -> list:
        conds = super().clauses(model)
        if self.email is not None:
            conds.append(func.lower(model.email) == self.email.lower())
        if self.name_contains:
            conds.append(model.display_name.icontains(self.name_contains, autoescape=True))
        return conds


class DraftFilter(QueryFilter):
    seller_id: Optional[str] = None

    def clauses(self, model) -> list:
        conds = super().clauses(model)
        if self.seller_id is not None:
            conds.append(model.seller_id == self.seller_id)
        return conds
