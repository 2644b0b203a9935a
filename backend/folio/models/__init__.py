# Ontology Models
from folio.models.ontology import (
    RoomType, RoomTypeRate, Room, Guest, Reservation, Transaction,
    LoyaltyTransaction, TaxSettings, TaxComponent, StateVersion, Employee, SystemLog
)

__all__ = [
    'RoomType', 'RoomTypeRate', 'Room', 'Guest', 'Reservation', 'Transaction',
    'LoyaltyTransaction', 'TaxSettings', 'TaxComponent', 'StateVersion', 'Employee', 'SystemLog'
]
