"""
本体对象 -> 响应字典
金额从最小货币单位换算为主币种 Decimal
"""
from typing import Optional
from folio.models.ontology import Room, RoomType, Guest, Reservation, Transaction, TaxSettings
from folio.services.rate_policy import from_minor


def room_type_to_dict(room_type: RoomType) -> dict:
    return {
        "id": room_type.id,
        "name": room_type.name,
        "description": room_type.description,
        "max_occupancy": room_type.max_occupancy,
        "is_active": room_type.is_active,
        "rates": {r.currency: from_minor(r.rate_minor) for r in room_type.rates},
        "room_count": len(room_type.rooms),
    }


def room_to_dict(room: Room) -> dict:
    return {
        "id": room.id,
        "room_number": room.room_number,
        "floor": room.floor,
        "room_type_id": room.room_type_id,
        "room_type_name": room.room_type.name if room.room_type else None,
        "rate": from_minor(room.rate_minor),
        "status": room.status,
        "guest_id": room.guest_id,
        "guest_name": room.guest.name if room.guest else None,
        "status_notes": room.status_notes,
        "is_active": room.is_active,
        "version": room.version,
    }


def guest_to_dict(guest: Guest, balance_minor: Optional[int] = None) -> dict:
    return {
        "id": guest.id,
        "name": guest.name,
        "email": guest.email,
        "phone": guest.phone,
        "id_type": guest.id_type,
        "id_number": guest.id_number,
        "arrival_date": guest.arrival_date,
        "departure_date": guest.departure_date,
        "room_number": guest.room_number,
        "room_type": guest.room_type,
        "adults": guest.adults,
        "children": guest.children,
        "booking_source": guest.booking_source,
        "currency": guest.currency,
        "loyalty_points": guest.loyalty_points,
        "lifetime_points": guest.lifetime_points,
        "loyalty_tier": guest.loyalty_tier,
        "is_vip": guest.is_vip,
        "company": guest.company,
        "balance": from_minor(balance_minor or 0),
    }


def transaction_to_dict(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "guest_id": txn.guest_id,
        "description": txn.description,
        "amount": from_minor(txn.amount_minor),
        "entry_type": txn.entry_type,
        "is_tax": txn.is_tax,
        "date": txn.date,
        "invoice_number": txn.invoice_number,
        "receipt_number": txn.receipt_number,
        "payment_method": txn.payment_method,
        "reference": txn.reference,
        "created_at": txn.created_at,
    }


def reservation_to_dict(reservation: Reservation) -> dict:
    return {
        "id": reservation.id,
        "reservation_no": reservation.reservation_no,
        "guest_id": reservation.guest_id,
        "guest_name": reservation.guest_name,
        "guest_email": reservation.guest_email,
        "guest_phone": reservation.guest_phone,
        "check_in_date": reservation.check_in_date,
        "check_out_date": reservation.check_out_date,
        "room_type_id": reservation.room_type_id,
        "room_type_name": reservation.room_type.name if reservation.room_type else None,
        "room_assigned": reservation.room_assigned,
        "booking_source": reservation.booking_source,
        "adult_count": reservation.adult_count,
        "child_count": reservation.child_count,
        "status": reservation.status,
        "special_requests": reservation.special_requests,
        "cancel_reason": reservation.cancel_reason,
        "created_at": reservation.created_at,
    }


def tax_settings_to_dict(tax: TaxSettings) -> dict:
    return {
        "is_enabled": tax.is_enabled,
        "components": [
            {
                "id": c.id,
                "name": c.name,
                "rate": c.rate,
                "is_inclusive": c.is_inclusive,
                "show_on_receipt": c.show_on_receipt,
                "is_active": c.is_active,
            }
            for c in tax.components
        ],
    }
