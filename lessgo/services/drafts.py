"""Multi-step listing creation: photos, basic info, details, location, review.

Navigation is linear. ``next_step`` only advances past a step whose guard
holds and otherwise raises a field-specific ``ValidationError``;
``previous_step`` always works except from the first step. Every edit
schedules a background save of the draft on the write queue. Failures there
are logged only, whereas ``save_draft`` and ``post_listing`` raise.
"""
import uuid
from typing import Callable, Iterable, List, Optional, Set, Union

from lessgo.core.clock import utcnow
from lessgo.core.errors import DraftValidationError, FieldError, PersistenceError, ValidationError
from lessgo.core.log import get_logger
from lessgo.schemas.draft import CreateListingStep, DraftListing
from lessgo.schemas.listing import DEFAULT_EXPIRATION_DAYS, MAX_IMAGES, MAX_TAGS, Category, ItemCondition, Listing
from lessgo.schemas.location import Location
from lessgo.services.converters import encode_image
from lessgo.services.persistence import PersistenceEngine
from lessgo.services.queries import DraftFilter
from lessgo.services.write_queue import WriteQueue

logger = get_logger("lessgo.drafts")

BASIC_INFO_FIELDS = ("title", "description", "price", "category", "condition")


def _new_id() -> str:
    return str(uuid.uuid4())


class DraftWorkflow:
    def __init__(
        self,
        engine: PersistenceEngine,
        queue: WriteQueue,
        seller_id: str,
        draft: Optional[DraftListing] = None,
        expiration_days: int = DEFAULT_EXPIRATION_DAYS,
        image_mime: str = "image/jpeg",
        id_factory: Callable[[], str] = _new_id,
    ):
        self.engine = engine
        self.queue = queue
        self.seller_id = seller_id
        self.expiration_days = expiration_days
        self.image_mime = image_mime
        self.id_factory = id_factory

        self.draft = draft or DraftListing.blank(id_factory(), seller_id, expiration_days)
        self.current_step = CreateListingStep.photos
        self.last_error: Optional[FieldError] = None
        # whether a row for this draft may exist in the store
        self._stored = draft is not None

    # ---------------------------
    # resuming saved drafts
    # ---------------------------
    @classmethod
    def resume(cls, engine: PersistenceEngine, queue: WriteQueue, draft_id: str, **kwargs) -> Optional["DraftWorkflow"]:
        draft = engine.fetch_by_id(DraftListing, draft_id)
        if draft is None:
            return None
        workflow = cls(engine, queue, draft.seller_id, draft=draft, **kwargs)
        # reopen at the first step that still needs work
        for step in CreateListingStep:
            workflow.current_step = step
            if workflow.step_error(step) is not None:
                break
        return workflow

    @staticmethod
    def drafts_for_seller(engine: PersistenceEngine, seller_id: str) -> List[DraftListing]:
        return engine.fetch_filtered(DraftListing, DraftFilter(seller_id=seller_id))

    # ---------------------------
    # auto-save
    # ---------------------------
    def _changed(self) -> None:
        self.draft.updated_at = utcnow()
        snapshot = self.draft.model_copy(deep=True)
        insert = not self._stored
        self._stored = True
        self.queue.submit(f"autosave draft {snapshot.id}", self._autosave, snapshot, insert)

    def _autosave(self, snapshot: DraftListing, insert: bool) -> None:
        if insert:
            self.engine.upsert(snapshot)
        elif not self.engine.update_existing(snapshot):
            # discarded elsewhere in the meantime, do not bring it back
            logger.info("Draft %s no longer exists, auto-save skipped", snapshot.id)

    def save_draft(self) -> DraftListing:
        """Explicit save. Raises PersistenceError so the caller can report it."""
        self.queue.flush()
        saved = self.engine.upsert(self.draft)
        self._stored = True
        logger.info("Saved draft %s", saved.id)
        return saved

    # ---------------------------
    # photos
    # ---------------------------
    @property
    def images(self) -> List[str]:
        return list(self.draft.images)

    def add_image(self, image: Union[bytes, str]) -> int:
        """Append a photo, returns its index."""
        if len(self.draft.images) >= MAX_IMAGES:
            raise self._fail("images", f"Maximum {MAX_IMAGES} photos allowed")
        self.draft.images.append(encode_image(image, self.image_mime))
        self._changed()
        return len(self.draft.images) - 1

    def remove_image(self, index: int) -> None:
        if not 0 <= index < len(self.draft.images):
            raise IndexError(f"No photo at index {index}")
        if len(self.draft.images) <= 1:
            raise self._fail("images", "Cannot remove the last photo. At least 1 photo is required.")
        del self.draft.images[index]
        self._changed()

    def move_images(self, source: Iterable[int], destination: int) -> None:
        """Move the photos at ``source`` so they land before ``destination``.

        ``destination`` is an offset into the list as it was before the
        move; the moved photos keep their relative order.
        """
        images = self.draft.images
        indices = sorted(set(source))
        if not indices:
            return
        if indices[0] < 0 or indices[-1] >= len(images):
            raise IndexError("Photo index out of range")
        if not 0 <= destination <= len(images):
            raise IndexError(f"Invalid destination {destination}")

        chosen = set(indices)
        moving = [images[i] for i in indices]
        remaining = [img for i, img in enumerate(images) if i not in chosen]
        insert_at = destination - sum(1 for i in indices if i < destination)
        remaining[insert_at:insert_at] = moving
        if remaining != images:
            self.draft.images = remaining
            self._changed()

    def set_main_image(self, index: int) -> None:
        self.move_images([index], 0)

    # ---------------------------
    # fields
    # ---------------------------
    def update_title(self, title: str) -> None:
        self.draft.title = title
        self._changed()

    def update_description(self, description: str) -> None:
        self.draft.description = description
        self._changed()

    def update_price(self, price: float) -> None:
        self.draft.price = float(price)
        self._changed()

    def update_category(self, category: Category) -> None:
        self.draft.category = Category(category)
        self._changed()

    def update_condition(self, condition: ItemCondition) -> None:
        self.draft.condition = ItemCondition(condition)
        self._changed()

    def update_quantity(self, quantity: int) -> None:
        self.draft.quantity = max(1, int(quantity))
        self._changed()

    def update_brand(self, brand: str) -> None:
        self.draft.brand = brand.strip() or None
        self._changed()

    def update_model(self, model: str) -> None:
        self.draft.model = model.strip() or None
        self._changed()

    def update_location(self, location: Optional[Location]) -> None:
        self.draft.location = location
        self._changed()

    def update_delivery_radius(self, radius: Optional[float]) -> None:
        self.draft.delivery_radius = radius
        self._changed()

    def update_tags(self, tags: Iterable[str]) -> None:
        cleaned = [t.strip() for t in tags if t and t.strip()]
        self.draft.tags = list(dict.fromkeys(cleaned))[:MAX_TAGS]
        self._changed()

    def toggle_negotiable(self) -> None:
        self.draft.is_negotiable = not self.draft.is_negotiable
        self._changed()

    def toggle_pickup_only(self) -> None:
        self.draft.pickup_only = not self.draft.pickup_only
        if self.draft.pickup_only:
            self.draft.shipping_available = False
            self.draft.shipping_cost = None
        self._changed()

    def toggle_shipping_available(self) -> None:
        self.draft.shipping_available = not self.draft.shipping_available
        if not self.draft.shipping_available:
            self.draft.shipping_cost = None
        self._changed()

    def update_shipping_cost(self, cost: Optional[float]) -> None:
        self.draft.shipping_cost = cost
        self._changed()

    # ---------------------------
    # validation
    # ---------------------------
    def _fail(self, field: str, message: str) -> ValidationError:
        self.last_error = FieldError(field, message)
        return ValidationError(field, message)

    @property
    def validation_errors(self) -> List[FieldError]:
        return self.draft.validation_errors

    def step_error(self, step: CreateListingStep) -> Optional[FieldError]:
        """First problem blocking ``step``, or None if it may be left forward."""
        draft = self.draft
        if step == CreateListingStep.photos:
            if not draft.images:
                return FieldError("images", "Please add at least one photo")
        elif step == CreateListingStep.basic_info:
            for error in draft.validation_errors:
                if error.field in BASIC_INFO_FIELDS:
                    return error
        elif step == CreateListingStep.details:
            if draft.quantity < 1:
                return FieldError("quantity", "Quantity must be at least 1")
        elif step == CreateListingStep.location:
            if draft.location is None:
                return FieldError("location", "Please set a location")
        return None

    @property
    def completed_steps(self) -> Set[CreateListingStep]:
        draft = self.draft
        completed = set()
        if draft.images:
            completed.add(CreateListingStep.photos)
        if draft.title.strip() and draft.category is not None and draft.condition is not None:
            completed.add(CreateListingStep.basic_info)
        if draft.quantity >= 1:
            completed.add(CreateListingStep.details)
        if draft.location is not None:
            completed.add(CreateListingStep.location)
        # review is the confirmation screen, never a completed step
        return completed

    @property
    def can_proceed(self) -> bool:
        if self.current_step == CreateListingStep.review:
            return self.draft.can_be_posted
        return self.step_error(self.current_step) is None

    @property
    def can_go_back(self) -> bool:
        return self.current_step != CreateListingStep.photos

    # ---------------------------
    # navigation
    # ---------------------------
    def next_step(self) -> CreateListingStep:
        if self.current_step == CreateListingStep.review:
            return self.current_step
        error = self.step_error(self.current_step)
        if error is not None:
            raise self._fail(error.field, error.message)
        self.last_error = None
        self.current_step = CreateListingStep(self.current_step + 1)
        return self.current_step

    def previous_step(self) -> bool:
        if not self.can_go_back:
            return False
        self.current_step = CreateListingStep(self.current_step - 1)
        return True

    def go_to_step(self, step: CreateListingStep) -> CreateListingStep:
        """Jump via the step indicator: back anywhere, forward only over valid steps."""
        step = CreateListingStep(step)
        if step > self.current_step:
            for earlier in CreateListingStep:
                if earlier >= step:
                    break
                error = self.step_error(earlier)
                if error is not None:
                    raise self._fail(error.field, error.message)
        self.current_step = step
        return step

    # ---------------------------
    # posting
    # ---------------------------
    def post_listing(self) -> Listing:
        """Publish the draft as an active listing and start a fresh draft.

        On failure nothing moves: the draft and the current step are kept so
        the user can retry. Retrying is safe, the listing id is the draft id.
        """
        errors = self.draft.validation_errors
        if errors:
            self.last_error = errors[0]
            raise DraftValidationError(errors)

        self.queue.flush()
        listing = self.engine.upsert(self.draft.to_listing())
        logger.info("Posted listing %s for seller %s", listing.id, self.seller_id)
        self.reset()
        return listing

    def reset(self) -> None:
        """Throw the current draft away and start over at the photos step."""
        self.queue.flush()
        if self._stored:
            try:
                self.engine.delete_by_id(DraftListing, self.draft.id)
            except PersistenceError as e:
                logger.warning("Could not discard draft %s: %s", self.draft.id, e)
        self.draft = DraftListing.blank(self.id_factory(), self.seller_id, self.expiration_days)
        self.current_step = CreateListingStep.photos
        self.last_error = None
        self._stored = False
