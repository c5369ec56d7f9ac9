"""rentboard - Occupancy grid and status pipeline for rental equipment reservations."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("rentboard")
except PackageNotFoundError:
    __version__ = "0+local"
from rentboard.board import ReservationBoard
from rentboard.client import RentboardClient
from rentboard.config import LabelPolicy, MqttSettings, RentboardConfig
from rentboard.exceptions import (
    InvalidWindowError,
    RentboardApiError,
    RentboardConfigError,
    RentboardError,
    RentboardTransportError,
    StaleSnapshotError,
    TransitionError,
    TransitionInFlightError,
    TransitionRejectedError,
    UnknownReservationError,
)
from rentboard.grid import build_grid
from rentboard.memory import InMemoryBackend
from rentboard.models import (
    ChangeEvent,
    Customer,
    DateWindow,
    EquipmentLine,
    Grid,
    GridCell,
    OpenReservationIntent,
    OverlapConflict,
    PipelineColumn,
    PlacedSpan,
    Reservation,
    ReservationItem,
    ReservationNote,
    ReservationStatus,
    StatusChangeResult,
    TransitionIntent,
    TransitionRecord,
)
from rentboard.pipeline import DragController, PipelineEngine
from rentboard.reconcile import ReconciliationLoop, Snapshot
from rentboard.state import BoardView, ViewStore

__all__ = [
    "__version__",
    "BoardView",
    "ChangeEvent",
    "Customer",
    "DateWindow",
    "DragController",
    "EquipmentLine",
    "Grid",
    "GridCell",
    "InMemoryBackend",
    "InvalidWindowError",
    "LabelPolicy",
    "MqttSettings",
    "OpenReservationIntent",
    "OverlapConflict",
    "PipelineColumn",
    "PipelineEngine",
    "PlacedSpan",
    "ReconciliationLoop",
    "RentboardApiError",
    "RentboardClient",
    "RentboardConfig",
    "RentboardConfigError",
    "RentboardError",
    "RentboardTransportError",
    "Reservation",
    "ReservationBoard",
    "ReservationItem",
    "ReservationNote",
    "ReservationStatus",
    "Snapshot",
    "StaleSnapshotError",
    "StatusChangeResult",
    "TransitionError",
    "TransitionInFlightError",
    "TransitionIntent",
    "TransitionRecord",
    "TransitionRejectedError",
    "UnknownReservationError",
    "ViewStore",
    "build_grid",
]
