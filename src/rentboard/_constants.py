"""Internal constants shared across the library."""

USER_AGENT = "rentboard/1 (+aiohttp)"
DEFAULT_TIME_ZONE = "Europe/Warsaw"
REST_PREFIX = "/rest/v1"

# ------------------------------------------------------------------
# PostgREST resources
# ------------------------------------------------------------------

RESERVATIONS_TABLE = "reservations"
EQUIPMENT_TABLE = "equipment"
NOTES_TABLE = "reservation_notes"
STATUS_RPC = "update_reservation_status"

RESERVATION_SELECT = (
    "id,status,start_date,end_date,start_time,end_time,total_price,created_at,updated_at,"
    "customer:customers(first_name,last_name,email,phone,company_name,company_nip),"
    "items:reservation_items(equipment_id,quantity,price_per_day,deposit,equipment:equipment(name)),"
    "history:reservation_history(previous_status,new_status,changed_at,comment,changed_by)"
)

# HTTP status codes PostgREST uses when an RPC refuses the request itself
# (raised exception, failed check, permission). Anything else is transport.
REJECTION_STATUS_CODES: frozenset[int] = frozenset({400, 403, 404, 409, 422})

# ------------------------------------------------------------------
# Default label thresholds (days)
# ------------------------------------------------------------------

LABEL_FULL_MIN_DAYS = 4
LABEL_MEDIUM_MIN_DAYS = 2
LABEL_NARROW_WIDTH = 100


def default_status_comment(status: str) -> str:
    """Comment attached to a status change when the caller gives none."""
    return f"Status changed to: {status}"
