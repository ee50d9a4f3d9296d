# constants/order_statuses.py

# Assignment statuses as stored by the order-assignments API
STATUS_ASSIGNED = "assigned"
STATUS_PENDING = "pending"
STATUS_PREPARING = "preparing"
STATUS_PREPARED = "prepared"
STATUS_UNDER_REVIEW = "under_review"
STATUS_UNDER_REVIEW_RESERVATION = "under_review_reservation"
STATUS_SHIPPED = "shipped"
STATUS_COMPLETED = "completed"

# Terminal statuses recorded in order history
STATUS_CANCELLED = "cancelled"
STATUS_REMOVED = "removed"

# Salla order status ids pushed when a worker hands an order over
SALLA_STATUS_UNDER_REVIEW = "1065456688"  # تحت المراجعة
SALLA_STATUS_UNDER_REVIEW_RESERVATION = "1576217163"  # تحت المراجعة حجز قطع

ASSIGNMENT_STATUS_LABELS = {
    STATUS_ASSIGNED: "🆕 Assigned",
    STATUS_PENDING: "🕒 Pending",
    STATUS_PREPARING: "🛠️ Preparing",
    STATUS_PREPARED: "📦 Prepared",
    STATUS_UNDER_REVIEW: "🔍 Under review",
    STATUS_UNDER_REVIEW_RESERVATION: "🔒 Under review (reservation)",
    STATUS_SHIPPED: "🚚 Shipped",
    STATUS_COMPLETED: "✅ Completed",
    STATUS_CANCELLED: "🚫 Cancelled",
    STATUS_REMOVED: "🗑️ Removed",
}

# Location summary bucket for items with no registered location
NO_LOCATION_KEY = "NO_LOCATION"
UNREGISTERED_LOCATION_LABEL = "غير مسجل"

# Variants shorter than this match too many unrelated SKUs
MIN_SKU_VARIANT_LENGTH = 3

# Hard cap on re-syncs triggered by externally auto-completed orders
MAX_AUTO_COMPLETE_REFRESHES = 3

DEFAULT_HISTORY_LIMIT = 10
DEFAULT_AUTO_REFRESH_SECONDS = 30
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_DISPLAY_TIMEZONE = "Asia/Riyadh"
