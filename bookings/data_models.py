# data_models.py
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import models


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    CARD = 'card', 'Card'
    UPI = 'upi', 'UPI'


@dataclass(frozen=True)
class PriceBreakdown:
    """Итог расчета цены; tax_amount = cgst + sgst + igst"""
    nights: int
    base_amount: Decimal
    gst_option: str
    gst_percent: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    tax_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class BookingRequest:
    """Проверенная заявка на бронь, еще не принятая сервисом"""
    room_id: str
    requester_id: Optional[str]
    guest_name: str
    guest_phone: str
    check_in_date: date
    check_out_date: date
    check_in_hour: int = 12
    check_out_hour: int = 11
    guest_email: str = ''
    guest_gst_number: str = ''
    gst_option: str = 'withoutGST'
    payment_method: str = PaymentMethod.CASH
    branch_id: Optional[str] = None
    price: Optional[PriceBreakdown] = None


@dataclass(frozen=True)
class Booking:
    """Бронь, принятая сервисом отеля"""
    id: str
    status: str
    room_id: str
    check_in_date: str
    check_out_date: str
    total_amount: Optional[Decimal] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data, request):
        """
        Ответ сервиса бывает как {'booking': {...}}, так и сама бронь
        :raises ValueError: в ответе нет идентификатора брони
        """
        if isinstance(data, dict) and isinstance(data.get('booking'), dict):
            data = data['booking']
        if not isinstance(data, dict):
            raise ValueError(f"Некорректный ответ сервиса: {data!r}")

        booking_id = data.get('_id') or data.get('id')
        if not booking_id:
            raise ValueError(f"В ответе нет идентификатора брони: {data!r}")

        room_id = data.get('roomId')
        if isinstance(room_id, dict):
            room_id = room_id.get('_id')
        try:
            total_amount = Decimal(str(data['totalPrice']))
        except (KeyError, InvalidOperation):
            # бронь уже создана; сумма берется из нашего расчета
            total_amount = request.price.total_amount if request.price else None
        return cls(
            id=str(booking_id),
            status=data.get('status', 'confirmed'),
            room_id=str(room_id or request.room_id),
            check_in_date=data.get('checkInDate') or request.check_in_date.isoformat(),
            check_out_date=data.get('checkOutDate') or request.check_out_date.isoformat(),
            total_amount=total_amount,
            raw=data,
        )
