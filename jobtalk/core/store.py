"""
Editable session state for a categorized job.

The store is an immutable value; every operation returns a new store, leaving
the input untouched. Rejected edits return the original store together with
the messages explaining why.
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import config
from .types import MAX_IMAGES, CategorizedFields, Custom, Editable, FieldCard, ImageAttachment, LineItem, ReadOnly

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("scope_of_work", "timeline", "budget")
CONTACT_FIELDS = ("name", "address", "phone", "email")


class FieldStore(BaseModel):
    """Session-local state behind the editing screen."""

    model_config = ConfigDict(frozen=True)

    fields: CategorizedFields = Field(default_factory=CategorizedFields)
    line_items: Tuple[LineItem, ...] = ()
    images: Tuple[ImageAttachment, ...] = ()
    down_payment_percent: float = Field(default_factory=lambda: config.default_down_payment, ge=0, le=100)
    terms: str = Field(default_factory=lambda: config.default_terms)
    next_id: int = 1


class StoreResult(NamedTuple):
    """Outcome of an edit that can be rejected."""

    store: FieldStore
    errors: Dict[str, str]

    @property
    def ok(self) -> bool:
        return not self.errors


def reset_store() -> FieldStore:
    """Return a fresh, empty store for a new recording session."""
    return FieldStore()


def load_categorized(store: FieldStore, fields: CategorizedFields) -> FieldStore:
    """Replace the categorized fields, keeping line items, images and terms."""
    return store.model_copy(update={"fields": fields})


def set_field(store: FieldStore, name: str, value: str) -> FieldStore:
    """
    Replace one of scope_of_work, timeline or budget.

    Raises:
        KeyError: For contact_information or an unknown field
    """
    if name not in EDITABLE_FIELDS:
        raise KeyError(f"Not an editable field: {name}. Use set_contact_field for contact details.")
    fields = store.fields.model_copy(update={name: value})
    return store.model_copy(update={"fields": fields})


def set_contact_field(store: FieldStore, name: str, value: str) -> FieldStore:
    """
    Replace one contact sub-field without touching the other fields.

    Raises:
        KeyError: For an unknown contact sub-field
    """
    if name not in CONTACT_FIELDS:
        raise KeyError(f"Not a contact field: {name}")
    contact = store.fields.contact_information.model_copy(update={name: value})
    fields = store.fields.model_copy(update={"contact_information": contact})
    return store.model_copy(update={"fields": fields})


def _as_number(value: Union[str, float, int, None]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def validate_line_item(
    quantity: Union[str, float, int, None], item_name: Optional[str], price: Union[str, float, int, None]
) -> Dict[str, str]:
    """Return per-field error messages; an empty dict means the entry is valid."""
    errors: Dict[str, str] = {}
    qty = _as_number(quantity)
    if qty is None or qty <= 0:
        errors["quantity"] = "Must be a positive number"
    if not (item_name or "").strip():
        errors["item_name"] = "Item name is required"
    cost = _as_number(price)
    if cost is None or cost < 0:
        errors["price"] = "Must be a non-negative number"
    return errors


def add_line_item(
    store: FieldStore,
    quantity: Union[str, float, int, None],
    item_name: Optional[str],
    price: Union[str, float, int, None],
) -> StoreResult:
    """Validate and append a budget line item with a fresh id."""
    errors = validate_line_item(quantity, item_name, price)
    if errors:
        logger.debug("Rejected line item: %s", errors)
        return StoreResult(store, errors)

    item = LineItem(id=store.next_id, quantity=float(quantity), item_name=item_name.strip(), price=float(price))
    updated = store.model_copy(update={"line_items": store.line_items + (item,), "next_id": store.next_id + 1})
    return StoreResult(updated, {})


def remove_line_item(store: FieldStore, item_id: int) -> FieldStore:
    """Remove a line item by id; unknown ids leave the store as is."""
    remaining = tuple(item for item in store.line_items if item.id != item_id)
    if len(remaining) == len(store.line_items):
        return store
    return store.model_copy(update={"line_items": remaining})


def total_price(store: FieldStore) -> float:
    """Sum of quantity * price over the current line items."""
    return sum(item.subtotal for item in store.line_items)


def add_image(store: FieldStore, filename: str, content_type: Optional[str], data: bytes) -> StoreResult:
    """Attach an image, up to MAX_IMAGES per store."""
    if not (content_type or "").startswith("image/"):
        return StoreResult(store, {"image": f'File "{filename}" is not an image.'})
    if len(store.images) >= MAX_IMAGES:
        return StoreResult(store, {"image": f"You can only attach up to {MAX_IMAGES} images."})
    if not data:
        return StoreResult(store, {"image": f'Could not read file "{filename}".'})

    image = ImageAttachment(id=store.next_id, filename=filename, content_type=content_type, data=data)
    updated = store.model_copy(update={"images": store.images + (image,), "next_id": store.next_id + 1})
    return StoreResult(updated, {})


def set_image_description(store: FieldStore, image_id: int, description: str) -> FieldStore:
    """Update the free-text description of an attached image."""
    if not any(image.id == image_id for image in store.images):
        return store
    images = tuple(
        image.model_copy(update={"description": description}) if image.id == image_id else image for image in store.images
    )
    return store.model_copy(update={"images": images})


def remove_image(store: FieldStore, image_id: int) -> FieldStore:
    """Remove an image by id; unknown ids leave the store as is."""
    remaining = tuple(image for image in store.images if image.id != image_id)
    if len(remaining) == len(store.images):
        return store
    return store.model_copy(update={"images": remaining})


def set_down_payment(store: FieldStore, percent: Union[str, float, int]) -> StoreResult:
    """Set the down payment percentage (0-100)."""
    value = _as_number(percent)
    if value is None or not 0 <= value <= 100:
        return StoreResult(store, {"down_payment": "Must be a percentage between 0 and 100"})
    return StoreResult(store.model_copy(update={"down_payment_percent": value}), {})


def set_terms(store: FieldStore, terms: str) -> FieldStore:
    """Replace the free-text payment terms."""
    return store.model_copy(update={"terms": terms})


def field_cards(store: FieldStore, editable: bool = True) -> List[FieldCard]:
    """
    Describe how each field is presented, in display order.

    The contact block is always a sub-form; the prose fields are editable
    unless the caller asks for a read-only view.
    """
    fields = store.fields
    cards = [FieldCard(title="Contact Information", view=Custom(subform=list(CONTACT_FIELDS)))]
    for title, text in (("Scope of Work", fields.scope_of_work), ("Timeline", fields.timeline), ("Budget", fields.budget)):
        view = Editable(text=text) if editable else ReadOnly(text=text)
        cards.append(FieldCard(title=title, view=view))
    if store.line_items:
        cards[-1] = cards[-1].model_copy(update={"hint": f"{len(store.line_items)} line item(s), total ${total_price(store):,.2f}"})
    return cards
