# Business Services
from folio.services.room_service import RoomService
from folio.services.reservation_service import ReservationService
from folio.services.guest_service import GuestService
from folio.services.ledger_service import LedgerService
from folio.services.loyalty_service import LoyaltyService
from folio.services.settings_service import SettingsService
from folio.services.state_service import StateService
from folio.services.folio_service import FolioService
from folio.services.employee_service import EmployeeService
from folio.services.audit_service import AuditService

__all__ = [
    'RoomService', 'ReservationService', 'GuestService', 'LedgerService',
    'LoyaltyService', 'SettingsService', 'StateService', 'FolioService',
    'EmployeeService', 'AuditService'
]
