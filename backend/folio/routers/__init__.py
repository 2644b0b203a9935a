# API Routers
from folio.routers import (
    auth, folio, transactions, rooms, reservations, guests, loyalty, settings, state, audit_logs
)

__all__ = [
    'auth', 'folio', 'transactions', 'rooms', 'reservations', 'guests',
    'loyalty', 'settings', 'state', 'audit_logs'
]
