# Batches with this many days left (or fewer) are "expiring soon".
EXPIRING_SOON_DAYS = 7
ROTATION_WINDOW_DAYS = 30

STATUS_EXPIRED = "EXPIRED"
STATUS_EXPIRING_SOON = "EXPIRING_SOON"
STATUS_FRESH = "FRESH"
FRESHNESS_STATUSES = (STATUS_EXPIRED, STATUS_EXPIRING_SOON, STATUS_FRESH)

DEFAULT_UNIT = "unidades"

COLLECTION_PRODUCTS = "products"
COLLECTION_INVENTORY = "inventory"
COLLECTION_CONSUMPTION = "consumption_history"
COLLECTION_NOTIFICATIONS = "notifications"

SORT_KEYS = ("name", "total_quantity", "next_expiry_date")
SORT_ASCENDING = "ascending"
SORT_DESCENDING = "descending"

MIN_PRODUCT_NAME_LENGTH = 2
