"""
Admin screen controllers

One controller per screen. Each keeps a local mirror of its collection fed by
a live subscription, a transient status line, and a two-phase delete. The
product and hero controllers also own a draft form plus the staged images,
and drive a submission through validate -> upload -> persist.
"""
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from errors import (
    DeletionFailed,
    DeletionNotRequested,
    PersistenceFailed,
    ReadFailed,
    UploadFailed,
    ValidationError,
)
from media_store import MediaAsset
from projections import (
    HERO_SEARCH_FIELDS,
    PRODUCT_SEARCH_FIELDS,
    filter_records,
    group_by_category,
    project_order,
)
from repository import DESCENDING, Record, Repository, Subscription
from schemas import (
    CATEGORIES,
    HEROES,
    ORDERS,
    PRODUCTS,
    SIZES,
    Hero,
    HeroForm,
    Product,
    ProductForm,
)
from uploads import PendingUpload, UploadOrchestrator

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class SubmissionState(str, Enum):
    EDITING = "editing"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    SETTLED = "settled"


class StatusKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Status:
    kind: StatusKind
    message: str
    cause: Optional[str] = None
    errors: Tuple[str, ...] = ()
    record_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is not StatusKind.ERROR

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "cause": self.cause,
            "errors": list(self.errors),
            "record_id": self.record_id,
        }


class StatusBoard:
    """Holds the latest status until it expires."""

    def __init__(self, timeout: float = 3.5, clock: Clock = time.monotonic) -> None:
        self.timeout = timeout
        self.clock = clock
        self._status: Optional[Status] = None
        self._posted_at = 0.0

    def post(self, status: Status) -> Status:
        self._status = status
        self._posted_at = self.clock()
        return status

    def current(self) -> Optional[Status]:
        if self._status is not None and self.clock() - self._posted_at >= self.timeout:
            self._status = None
        return self._status

    def clear(self) -> None:
        self._status = None


@dataclass
class PendingDeletion:
    ids: Tuple[str, ...] = ()
    bulk: bool = False


class CollectionController:
    """Mirror of one collection with two-phase deletion."""

    collection: str = ""
    noun: str = "record"
    plural: str = "records"
    order_key = "created_at"

    def __init__(self, repository: Repository, status_timeout: float = 3.5, clock: Clock = time.monotonic) -> None:
        self.repository = repository
        self.status = StatusBoard(status_timeout, clock)
        self._records: List[Record] = []
        self._subscription: Optional[Subscription] = None
        self._pending_deletion: Optional[PendingDeletion] = None

    # -- live mirror --

    @property
    def records(self) -> List[Record]:
        return list(self._records)

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    def mount(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self.repository.subscribe(
            self.collection, self._on_snapshot, self.order_key, DESCENDING
        )

    def unmount(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()
        self._pending_deletion = None

    def _on_snapshot(self, records: List[Record]) -> None:
        self._records = list(records)

    # -- deletion --

    @property
    def pending_deletion(self) -> Optional[PendingDeletion]:
        return self._pending_deletion

    def request_delete(self, record_id: str) -> PendingDeletion:
        self._pending_deletion = PendingDeletion(ids=(record_id,))
        return self._pending_deletion

    def request_delete_all(self) -> Optional[Status]:
        """Ask to delete everything; returns an info status when there is nothing to delete."""
        if not self._records:
            self._pending_deletion = None
            return self.status.post(Status(StatusKind.INFO, f"No {self.plural} to delete."))
        self._pending_deletion = PendingDeletion(bulk=True)
        return None

    def cancel_delete(self) -> None:
        self._pending_deletion = None

    def confirm_delete(self) -> Status:
        pending, self._pending_deletion = self._pending_deletion, None
        if pending is None:
            raise DeletionNotRequested(f"No {self.noun} deletion is waiting for confirmation")
        if pending.bulk:
            return self._delete_all()
        return self._delete_one(pending.ids[0])

    def _delete_one(self, record_id: str) -> Status:
        try:
            self.repository.delete(self.collection, record_id)
        except DeletionFailed as e:
            logger.error("Deleting %s %s failed: %s", self.noun, record_id, e)
            return self.status.post(Status(StatusKind.ERROR, f"Failed to delete {self.noun}", cause="deletion"))
        self._records = [r for r in self._records if r.get("id") != record_id]
        return self.status.post(Status(StatusKind.SUCCESS, f"{self.noun.capitalize()} deleted successfully!"))

    def _delete_all(self) -> Status:
        ids = [r["id"] for r in self._records if r.get("id")]
        if not ids:
            return self.status.post(Status(StatusKind.INFO, f"No {self.plural} to delete."))
        try:
            self.repository.delete_batch(self.collection, ids)
        except DeletionFailed as e:
            logger.error("Deleting all %s failed: %s", self.plural, e)
            return self.status.post(Status(StatusKind.ERROR, f"Failed to delete all {self.plural}", cause="deletion"))
        removed = set(ids)
        self._records = [r for r in self._records if r.get("id") not in removed]
        return self.status.post(Status(StatusKind.SUCCESS, f"All {self.plural} deleted"))


class IngestionController(CollectionController, ABC):
    """Draft form + staged images -> one persisted record with hosted image URLs."""

    form_class: Any = None
    search_fields: Tuple[str, ...] = ()

    def __init__(
        self,
        repository: Repository,
        uploads: UploadOrchestrator,
        status_timeout: float = 3.5,
        clock: Clock = time.monotonic,
    ) -> None:
        super().__init__(repository, status_timeout, clock)
        self.uploads = uploads
        self.draft = self.form_class()
        self._state = SubmissionState.EDITING

    @property
    def state(self) -> SubmissionState:
        if self._state is SubmissionState.SETTLED and self.status.current() is None:
            self._state = SubmissionState.EDITING
        return self._state

    def unmount(self) -> None:
        super().unmount()
        self.uploads.clear()

    # -- editing --

    def edit(self, **changes: Any) -> Any:
        # Parse the changes alone first so alias keys (e.g. "subtitle") land on their field
        updates = self.form_class.model_validate(changes)
        data = self.draft.model_dump()
        data.update(updates.model_dump(include=updates.model_fields_set))
        self.draft = self.form_class.model_validate(data)
        return self.draft

    def reset_draft(self) -> None:
        self.draft = self.form_class()

    def stage_asset(self, asset: MediaAsset) -> PendingUpload:
        return self.uploads.stage_asset(asset)

    def remove_asset(self, preview_url: str) -> bool:
        return self.uploads.remove(preview_url)

    @property
    def staged(self) -> List[PendingUpload]:
        return self.uploads.pending

    def filtered(self, term: Optional[str] = None) -> List[Record]:
        return filter_records(self._records, term, self.search_fields)

    # -- submission --

    @abstractmethod
    def validate(self) -> Dict[str, Any]:
        """Check the draft and staged images; raise ValidationError listing every problem."""

    @abstractmethod
    def build_record(self, values: Dict[str, Any], urls: List[str]) -> Dict[str, Any]:
        ...

    def _settle(self, status: Status) -> Status:
        self._state = SubmissionState.SETTLED
        return self.status.post(status)

    def submit(self) -> Status:
        self.status.clear()
        self._state = SubmissionState.VALIDATING
        try:
            values = self.validate()
        except ValidationError as e:
            self._state = SubmissionState.EDITING
            logger.info("Rejected %s submission: %s", self.noun, e)
            return self.status.post(Status(StatusKind.ERROR, str(e), cause="validation", errors=tuple(e.errors)))

        self._state = SubmissionState.UPLOADING
        try:
            urls = self.uploads.commit_all()
        except UploadFailed as e:
            logger.error("Uploading %s images failed (%d uploaded): %s", self.noun, e.completed, e.reason)
            return self._settle(Status(StatusKind.ERROR, e.reason, cause="upload"))

        self._state = SubmissionState.PERSISTING
        record = self.build_record(values, urls)
        try:
            record_id = self.repository.create(self.collection, record)
        except PersistenceFailed as e:
            logger.error("Saving %s failed; %d hosted images are unreferenced: %s", self.noun, len(urls), e)
            return self._settle(Status(StatusKind.ERROR, f"Failed to add {self.noun}. Try again.", cause="persistence"))

        self.uploads.clear()
        self.reset_draft()
        return self._settle(
            Status(StatusKind.SUCCESS, f"{self.noun.capitalize()} added successfully!", record_id=record_id)
        )


def _parse_number(raw: str, label: str, errors: List[str], integer: bool = False) -> Optional[float]:
    text = (raw or "").strip()
    if not text:
        return None
    try:
        value = int(text) if integer else float(text)
    except ValueError:
        errors.append(f"{label} must be a {'whole number' if integer else 'number'}.")
        return None
    if not integer and not math.isfinite(value):
        errors.append(f"{label} must be a number.")
        return None
    return value


class ProductController(IngestionController):
    collection = PRODUCTS
    noun = "product"
    plural = "products"
    form_class = ProductForm
    search_fields = PRODUCT_SEARCH_FIELDS

    def toggle_size(self, size: str) -> List[str]:
        sizes = list(self.draft.sizes)
        if size in sizes:
            sizes.remove(size)
        else:
            sizes.append(size)
        self.edit(sizes=sizes)
        return sizes

    def grouped(self, term: Optional[str] = None, include_other: bool = False) -> Dict[str, List[Record]]:
        return group_by_category(self.filtered(term), include_other=include_other)

    def validate(self) -> Dict[str, Any]:
        form: ProductForm = self.draft
        errors: List[str] = []
        missing = [
            label
            for label, value in (
                ("name", form.name.strip()),
                ("description", form.description.strip()),
                ("price", form.price.strip()),
                ("sale price", form.sale_price.strip()),
                ("quantity", form.quantity.strip()),
                ("category", form.category),
            )
            if not value
        ]
        if missing:
            errors.append(f"Please fill in: {', '.join(missing)}.")
        if not form.sizes:
            errors.append("Select at least one size.")
        if len(self.uploads) == 0:
            errors.append("Add at least one image.")

        price = _parse_number(form.price, "Price", errors)
        sale_price = _parse_number(form.sale_price, "Sale price", errors)
        quantity = _parse_number(form.quantity, "Quantity", errors, integer=True)
        if price is not None and price <= 0:
            errors.append("Price must be greater than 0.")
        if sale_price is not None and sale_price < 0:
            errors.append("Sale price must be 0 or more.")
        if quantity is not None and quantity < 0:
            errors.append("Quantity must be 0 or more.")
        if form.category and form.category not in CATEGORIES:
            errors.append(f"Category must be one of {', '.join(CATEGORIES)}.")
        unknown = [s for s in form.sizes if s not in SIZES]
        if unknown:
            errors.append(f"Unknown sizes: {', '.join(unknown)}.")

        if errors:
            raise ValidationError(errors)
        return {
            "name": form.name.strip(),
            "description": form.description.strip(),
            "price": price,
            "sale_price": sale_price,
            "quantity": quantity,
            "category": form.category,
            "sizes": [s for s in SIZES if s in form.sizes],
        }

    def build_record(self, values: Dict[str, Any], urls: List[str]) -> Dict[str, Any]:
        return Product(images=urls, **values).model_dump()


class HeroController(IngestionController):
    collection = HEROES
    noun = "hero"
    plural = "heroes"
    form_class = HeroForm
    search_fields = HERO_SEARCH_FIELDS

    def stage_asset(self, asset: MediaAsset) -> PendingUpload:
        """A hero has one image; staging a new one replaces the previous."""
        pending = self.uploads.stage_asset(asset)
        for previous in self.uploads.pending:
            if previous is not pending:
                self.uploads.remove(previous.preview_url)
        return pending

    def validate(self) -> Dict[str, Any]:
        form: HeroForm = self.draft
        errors: List[str] = []
        values = {
            "title": form.title.strip(),
            "button_text": form.button_text.strip(),
            "description": form.description.strip(),
        }
        missing = [k.replace("_", " ") for k, v in values.items() if not v]
        if missing:
            errors.append(f"Please fill in: {', '.join(missing)}.")
        if len(self.uploads) != 1:
            errors.append("Add one banner image.")
        if errors:
            raise ValidationError(errors)
        return values

    def build_record(self, values: Dict[str, Any], urls: List[str]) -> Dict[str, Any]:
        return Hero(image=urls[0], **values).model_dump()


class OrderController(CollectionController):
    """Orders are written by the storefront; this screen reads and deletes them."""

    collection = ORDERS
    noun = "order"
    plural = "orders"
    order_key = "timestamp"

    def refresh(self) -> List[Record]:
        """Re-read the collection; on a read failure the previous mirror is kept."""
        try:
            self._records = self.repository.list(self.collection, self.order_key, DESCENDING)
        except ReadFailed as e:
            logger.error("Loading orders failed: %s", e)
            self.status.post(Status(StatusKind.ERROR, "Failed to load orders", cause="read"))
        return self.records

    def projected(self) -> List[Record]:
        return [project_order(r) for r in self._records]
