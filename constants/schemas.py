from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constants.order_statuses import STATUS_CANCELLED, STATUS_COMPLETED, STATUS_REMOVED
from utils.sku_matching import get_number_value, get_string_value

# --- Order payload (opaque upstream order, only the consumed fields are typed) ---


class OrderItem(BaseModel):
    """A single order line item as delivered inside ``orderData``"""

    sku: Any = None
    name: Any = None
    quantity: Any = 0

    model_config = ConfigDict(extra="allow")

    @property
    def quantity_value(self) -> float:
        return get_number_value(self.quantity)

    @property
    def display_name(self) -> str:
        return get_string_value(self.name)


class OrderData(BaseModel):
    """Order payload attached to an assignment"""

    items: List[OrderItem] = Field(default_factory=list)
    notes: Any = None
    tags: List[Any] = Field(default_factory=list)
    customer: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _pick_item_list(cls, data: Any) -> Any:
        # Older payloads carry the line items under a different key
        if not isinstance(data, dict):
            return {}
        data = dict(data)
        if not isinstance(data.get("items"), list):
            for candidate in ("products", "line_items"):
                if isinstance(data.get(candidate), list):
                    data["items"] = data[candidate]
                    break
            else:
                data["items"] = []
        if not isinstance(data.get("tags"), list):
            data["tags"] = []
        if not isinstance(data.get("customer"), dict):
            data["customer"] = {}
        return data

    @field_validator("items", mode="before")
    @classmethod
    def _drop_non_dict_items(cls, value: Any) -> Any:
        return [item for item in value if isinstance(item, dict)]

    @property
    def customer_name(self) -> str:
        first = get_string_value(self.customer.get("first_name"))
        last = get_string_value(self.customer.get("last_name"))
        full = f"{first} {last}".strip()
        return full or get_string_value(self.customer.get("name"))


class FlagMetadata(BaseModel):
    """Who marked an order (high priority, gift) and why"""

    reason: Optional[str] = None
    notes: Optional[str] = None
    marked_by: Optional[str] = None
    marked_at: Optional[datetime] = None


class Assignment(BaseModel):
    """One worker's claim on one order"""

    id: str
    order_id: str = Field(alias="orderId", default="")
    order_number: str = Field(alias="orderNumber", default="")
    order_data: OrderData = Field(alias="orderData", default_factory=OrderData)
    status: str = "assigned"
    assigned_at: Optional[datetime] = Field(alias="assignedAt", default=None)
    notes: Optional[str] = None
    is_high_priority: bool = Field(alias="isHighPriority", default=False)
    high_priority_reason: Optional[str] = Field(alias="highPriorityReason", default=None)
    high_priority_notes: Optional[str] = Field(alias="highPriorityNotes", default=None)
    high_priority_marked_by: Optional[str] = Field(alias="highPriorityMarkedBy", default=None)
    high_priority_marked_at: Optional[datetime] = Field(alias="highPriorityMarkedAt", default=None)
    has_gift_flag: bool = Field(alias="hasGiftFlag", default=False)
    gift_flag_reason: Optional[str] = Field(alias="giftFlagReason", default=None)
    gift_flag_notes: Optional[str] = Field(alias="giftFlagNotes", default=None)
    gift_flag_marked_by: Optional[str] = Field(alias="giftFlagMarkedBy", default=None)
    gift_flag_marked_at: Optional[datetime] = Field(alias="giftFlagMarkedAt", default=None)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("order_id", "order_number", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> str:
        return get_string_value(value)

    @field_validator("order_data", mode="before")
    @classmethod
    def _default_order_data(cls, value: Any) -> Any:
        return value if value is not None else {}

    @field_validator("is_high_priority", "has_gift_flag", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def items(self) -> List[OrderItem]:
        return self.order_data.items

    @property
    def items_count(self) -> float:
        return sum(item.quantity_value for item in self.items)

    @property
    def display_reference(self) -> str:
        return self.order_number or self.order_id or self.id

    @property
    def priority(self) -> Optional[FlagMetadata]:
        if not self.is_high_priority:
            return None
        return FlagMetadata(
            reason=self.high_priority_reason,
            notes=self.high_priority_notes,
            marked_by=self.high_priority_marked_by,
            marked_at=self.high_priority_marked_at,
        )

    @property
    def gift_flag(self) -> Optional[FlagMetadata]:
        if not self.has_gift_flag:
            return None
        return FlagMetadata(
            reason=self.gift_flag_reason,
            notes=self.gift_flag_notes,
            marked_by=self.gift_flag_marked_by,
            marked_at=self.gift_flag_marked_at,
        )


class ProductLocation(BaseModel):
    """Warehouse location record for a SKU"""

    id: str = ""
    sku: Any = ""
    location: str = ""
    product_name: Optional[str] = Field(alias="productName", default=None)
    notes: Optional[str] = None
    updated_by: Optional[str] = Field(alias="updatedBy", default=None)
    updated_at: Optional[datetime] = Field(alias="updatedAt", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("id", "location", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return get_string_value(value)


class HistoryEntry(BaseModel):
    """Terminal (completed, cancelled, removed) assignment record"""

    id: Optional[str] = None
    order_id: Optional[str] = Field(alias="orderId", default=None)
    order_number: Optional[str] = Field(alias="orderNumber", default=None)
    status: str = "completed"
    assigned_at: Optional[datetime] = Field(alias="assignedAt", default=None)
    finished_at: Optional[datetime] = Field(alias="finishedAt", default=None)
    duration_minutes: Optional[float] = Field(alias="durationMinutes", default=None)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("id", "order_id", "order_number", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> Optional[str]:
        text = get_string_value(value)
        return text or None


# --- Collaborator responses ---


class AssignmentSnapshot(BaseModel):
    """Response of GET my-orders"""

    success: bool = True
    assignments: List[Assignment] = Field(default_factory=list)
    auto_completed_assignments: List[Assignment] = Field(
        alias="autoCompletedAssignments", default_factory=list
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("assignments", "auto_completed_assignments", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []


class AutoAssignResult(BaseModel):
    success: bool = True
    assigned: int = 0
    message: Optional[str] = None
    error: Optional[str] = None


class RemoteResult(BaseModel):
    """Generic {success, error, details} envelope of the mutation endpoints"""

    success: bool = False
    error: Optional[str] = None
    details: Optional[str] = None
    message: Optional[str] = None
    items_count: Optional[int] = Field(alias="itemsCount", default=None)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("error", "details", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return get_string_value(value) or None


class LocationLookupResult(BaseModel):
    success: bool = False
    locations: List[ProductLocation] = Field(default_factory=list)
    error: Optional[str] = None


class HistoryStats(BaseModel):
    """Totals over a worker's finished orders"""

    total: int = 0
    completed: int = 0
    cancelled: int = 0
    removed: int = 0
    total_duration: float = Field(alias="totalDuration", default=0)
    average_duration: float = Field(alias="averageDuration", default=0)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_entries(cls, entries: List[HistoryEntry]) -> "HistoryStats":
        """Same totals the history endpoint reports, for servers that omit them"""
        total_duration = sum(entry.duration_minutes or 0 for entry in entries)
        return cls(
            total=len(entries),
            completed=sum(1 for entry in entries if entry.status == STATUS_COMPLETED),
            cancelled=sum(1 for entry in entries if entry.status == STATUS_CANCELLED),
            removed=sum(1 for entry in entries if entry.status == STATUS_REMOVED),
            total_duration=total_duration,
            average_duration=round(total_duration / len(entries)) if entries else 0,
        )


class HistoryResult(BaseModel):
    success: bool = False
    history: List[HistoryEntry] = Field(default_factory=list)
    stats: Optional[HistoryStats] = None
    error: Optional[str] = None


class DiagnosticsUser(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    order_type: Optional[str] = Field(alias="orderType", default=None)
    specific_status: Optional[str] = Field(alias="specificStatus", default=None)
    auto_assign: bool = Field(alias="autoAssign", default=False)
    is_active: bool = Field(alias="isActive", default=False)

    model_config = ConfigDict(populate_by_name=True)


class DiagnosticsStatusConfig(BaseModel):
    status_filter: Optional[str] = Field(alias="statusFilter", default=None)
    status_id: Optional[str] = Field(alias="statusId", default=None)
    status_name: str = Field(alias="statusName", default="")
    status_slug: str = Field(alias="statusSlug", default="")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("status_filter", "status_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Optional[str]:
        return get_string_value(value) or None


class DiagnosticsOrderCounts(BaseModel):
    total: int = 0
    after_payment_filter: int = Field(alias="afterPaymentFilter", default=0)
    available: int = 0
    already_assigned: int = Field(alias="alreadyAssigned", default=0)

    model_config = ConfigDict(populate_by_name=True)


class DiagnosticsAssignmentCounts(BaseModel):
    total_assignments: int = Field(alias="totalAssignments", default=0)
    user_active_assignments: int = Field(alias="userActiveAssignments", default=0)
    can_assign_more: bool = Field(alias="canAssignMore", default=False)

    model_config = ConfigDict(populate_by_name=True)


class AssignmentDiagnostics(BaseModel):
    """Why a worker is (or is not) getting new orders"""

    user: DiagnosticsUser = Field(default_factory=DiagnosticsUser)
    status_config: DiagnosticsStatusConfig = Field(alias="statusConfig", default_factory=DiagnosticsStatusConfig)
    orders_in_salla: DiagnosticsOrderCounts = Field(alias="ordersInSalla", default_factory=DiagnosticsOrderCounts)
    assignments: DiagnosticsAssignmentCounts = Field(default_factory=DiagnosticsAssignmentCounts)
    sample_orders: List[Dict[str, Any]] = Field(alias="sampleOrders", default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @property
    def hint(self) -> str:
        available = self.orders_in_salla.available
        if available == 0 and self.orders_in_salla.total == 0:
            return (
                f"❌ No orders in Salla with status \"{self.status_config.status_name}\". "
                f"Check that the store has new orders."
            )
        if available == 0:
            return "⚠️ Every matching order is already assigned. Wait for new orders or finish the current ones."
        if not self.assignments.can_assign_more:
            return f"⚠️ {available} order(s) available but you still have an active order. Finish it first."
        return f"✅ {available} order(s) available and you can take a new one. Press \"Refresh orders\"."


class DiagnosticsResult(BaseModel):
    success: bool = False
    debug: Optional[AssignmentDiagnostics] = None
    error: Optional[str] = None


# --- Derived views and outcomes ---


class LocationGroupItem(BaseModel):
    sku: str
    name: str
    quantity: float = 0


class LocationGroup(BaseModel):
    """One pick-list bucket: every item stored at the same location"""

    key: str
    location_label: str
    total_quantity: float = 0
    items: List[LocationGroupItem] = Field(default_factory=list)


class SyncResult(BaseModel):
    success: bool
    message: Optional[str] = None
    assignments_count: int = 0
    auto_assigned: int = 0
    conflict_refreshes: int = 0


class ActionResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None
