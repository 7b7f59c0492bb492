"""
Reservation Conflict Detector

Pure evaluation of a proposed reservation against a snapshot of a shop's
reservations and tables. Nothing here touches the database: callers load the
snapshot (see ``ReservationService.snapshot``) and decide what to do with
the report. The same function backs the read-only availability check and
the enforcing re-check performed inside write transactions.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, List, Optional

from django.utils import timezone

TIME_OVERLAP = 'time_overlap'
CAPACITY_ISSUE = 'capacity_issue'
TABLE_UNAVAILABLE = 'table_unavailable'
PEAK_HOURS = 'peak_hours'

SEVERITY_LOW = 'low'
SEVERITY_MEDIUM = 'medium'
SEVERITY_HIGH = 'high'

BUFFER_WINDOW = timedelta(minutes=90)
HIGH_OVERLAP_WINDOW = timedelta(minutes=60)

# Inclusive hour ranges
PEAK_HOURS_RANGES = ((12, 14), (18, 21))
PEAK_DEMAND_RATIO = 0.8

ACTIVE_STATUSES = ('confirmed', 'seated')
SEATABLE_STATUSES = ('available', 'reserved')


@dataclass(frozen=True)
class Conflict:
    type: str
    severity: str
    message: str
    suggested_action: str = ''
    affected_reservation_id: Optional[int] = None

    def as_dict(self):
        return {
            'type': self.type,
            'severity': self.severity,
            'message': self.message,
            'suggested_action': self.suggested_action,
            'affected_reservation_id': self.affected_reservation_id,
        }


@dataclass
class ConflictReport:
    conflicts: List[Conflict] = field(default_factory=list)

    @property
    def has_conflicts(self):
        return bool(self.conflicts)

    @property
    def has_high_severity_conflicts(self):
        return any(c.severity == SEVERITY_HIGH for c in self.conflicts)

    @property
    def has_medium_severity_conflicts(self):
        return any(c.severity == SEVERITY_MEDIUM for c in self.conflicts)

    @property
    def can_proceed(self):
        return not self.has_high_severity_conflicts

    def of_type(self, conflict_type):
        return [c for c in self.conflicts if c.type == conflict_type]

    def as_dict(self):
        return {
            'conflicts': [c.as_dict() for c in self.conflicts],
            'has_conflicts': self.has_conflicts,
            'has_high_severity_conflicts': self.has_high_severity_conflicts,
            'has_medium_severity_conflicts': self.has_medium_severity_conflicts,
            'can_proceed': self.can_proceed,
        }


def _local(value):
    if timezone.is_aware(value):
        return timezone.localtime(value)
    return value


def _hour_slot(local_time):
    """Start of the calendar hour containing ``local_time``."""
    return local_time.replace(minute=0, second=0, microsecond=0)


def is_peak_hour(hour):
    return any(start <= hour <= end for start, end in PEAK_HOURS_RANGES)


def detect_conflicts(
    proposed_time,
    party_size: int,
    reservations: Iterable,
    tables: Iterable,
    selected_table=None,
    exclude_reservation_id: Optional[int] = None,
    seating: bool = False,
) -> ConflictReport:
    """
    Evaluate a proposed reservation.

    Args:
        proposed_time: Aware datetime of the reservation
        party_size: Number of guests
        reservations: All reservations of the shop (any status)
        tables: All tables of the shop
        selected_table: Table the party would sit at (optional)
        exclude_reservation_id: Reservation being edited or seated
        seating: Re-check at seat time; the selected table counts as
            available for the global availability check

    Returns:
        ConflictReport
    """
    tables = list(tables)
    conflicts = []

    active = [
        r for r in reservations
        if r.id != exclude_reservation_id and r.status in ACTIVE_STATUSES
    ]

    if selected_table is not None:
        for res in active:
            if res.table_id != selected_table.id:
                continue
            gap = abs(proposed_time - res.reservation_time)
            if gap < BUFFER_WINDOW:
                close = gap < HIGH_OVERLAP_WINDOW
                conflicts.append(Conflict(
                    type=TIME_OVERLAP,
                    severity=SEVERITY_HIGH if close else SEVERITY_MEDIUM,
                    message=(
                        f"Table {selected_table.number} has a reservation at "
                        f"{_local(res.reservation_time):%H:%M}"
                    ),
                    suggested_action=(
                        'Choose different time or table' if close else 'Consider 30min buffer'
                    ),
                    affected_reservation_id=res.id,
                ))

        if selected_table.capacity < party_size:
            conflicts.append(Conflict(
                type=CAPACITY_ISSUE,
                severity=SEVERITY_HIGH,
                message=(
                    f"Table {selected_table.number} only seats {selected_table.capacity}, "
                    f"but party size is {party_size}"
                ),
                suggested_action='Select a larger table',
            ))

        if selected_table.status not in SEATABLE_STATUSES:
            occupied = selected_table.status == 'occupied'
            conflicts.append(Conflict(
                type=TABLE_UNAVAILABLE,
                severity=SEVERITY_HIGH if occupied else SEVERITY_MEDIUM,
                message=f"Table {selected_table.number} is currently {selected_table.status}",
                suggested_action=(
                    'Choose different table' if occupied else 'Table will be available soon'
                ),
            ))

    local_time = _local(proposed_time)
    hour = local_time.hour
    if is_peak_hour(hour):
        slot = _hour_slot(local_time)
        demand = sum(
            r.party_size for r in active
            if _hour_slot(_local(r.reservation_time)) == slot
        ) + party_size
        seating_capacity = sum(t.capacity for t in tables)
        if demand > seating_capacity * PEAK_DEMAND_RATIO:
            conflicts.append(Conflict(
                type=PEAK_HOURS,
                severity=SEVERITY_HIGH if demand > seating_capacity else SEVERITY_MEDIUM,
                message=f"Peak hour ({hour}:00) - High demand expected",
                suggested_action='Consider off-peak times or add to wait list',
            ))

    def fits(table):
        if table.capacity < party_size:
            return False
        if table.status == 'available':
            return True
        return (
            seating
            and selected_table is not None
            and table.id == selected_table.id
            and table.status in SEATABLE_STATUSES
        )

    if not any(fits(t) for t in tables):
        conflicts.append(Conflict(
            type=TABLE_UNAVAILABLE,
            severity=SEVERITY_HIGH,
            message=f"No tables available for party of {party_size}",
            suggested_action='Add to wait list or suggest different time',
        ))

    return ConflictReport(conflicts)
