# data_models.py
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import FrozenSet, List, Optional

from .slots import HOURS_PER_DAY


def _ref_id(value):
    """branchId приходит либо строкой, либо вложенным объектом"""
    if isinstance(value, dict):
        value = value.get('_id') or value.get('id')
    return str(value) if value else None


def _amenities(value):
    """
    Удобства приходят списком или словарем {название: есть/нет}
    """
    if isinstance(value, dict):
        return [str(name) for name, present in value.items() if present]
    return [str(name) for name in value or []]


@dataclass(frozen=True)
class Branch:
    """Филиал отеля"""
    id: str
    name: str
    address: str = ''

    @classmethod
    def from_api(cls, data):
        return cls(
            id=str(data.get('_id') or data.get('id')),
            name=data.get('name', ''),
            address=data.get('address', ''),
        )


@dataclass(frozen=True)
class Room:
    """Комната (ресурс бронирования) в том виде, как ее отдает сервис отеля"""
    id: str
    rate: Decimal
    is_available: bool = True
    branch_id: Optional[str] = None
    floor: str = ''
    room_number: str = ''
    room_type: str = ''
    amenities: List[str] = field(default_factory=list)

    @property
    def display_name(self):
        if self.room_number:
            return f"{self.floor} - Room {self.room_number}"
        return self.floor

    @classmethod
    def from_api(cls, data):
        """
        :raises ValueError: нет id или цена не число
        """
        if not isinstance(data, dict):
            raise ValueError(f"Комната не является объектом: {data!r}")
        room_id = data.get('_id') or data.get('id')
        if not room_id:
            raise ValueError(f"Комната без идентификатора: {data!r}")
        try:
            rate = Decimal(str(data.get('price', 0)))
        except InvalidOperation as e:
            raise ValueError(f"Некорректная цена комнаты {room_id}: {data.get('price')!r}") from e

        return cls(
            id=str(room_id),
            rate=rate,
            is_available=bool(data.get('isAvailable', True)),
            branch_id=_ref_id(data.get('branchId')),
            floor=str(data.get('floor') or ''),
            room_number=str(data.get('roomNumber') or ''),
            room_type=str(data.get('roomType') or ''),
            amenities=_amenities(data.get('amenities')),
        )


@dataclass(frozen=True)
class DayOccupancy:
    """Занятость комнаты за один день; вычисляется, не хранится"""
    room_id: str
    date: str
    booked_hours: FrozenSet[int] = frozenset()
    fetch_failed: bool = False

    @property
    def has_bookings(self):
        return bool(self.booked_hours)

    @property
    def is_fully_booked(self):
        return len(self.booked_hours) == HOURS_PER_DAY

    def is_hour_available(self, hour):
        return hour not in self.booked_hours


@dataclass(frozen=True)
class ActiveBooking:
    """Текущая бронь комнаты; подробности видит только ее владелец"""
    room_id: str
    user_id: Optional[str]
    check_in_date: str = ''
    check_in_time: str = ''
    check_out_date: str = ''
    check_out_time: str = ''

    @classmethod
    def from_api(cls, data, room_id):
        user_id = data.get('userId')
        if isinstance(user_id, dict):
            user_id = user_id.get('_id') or user_id.get('id')
        return cls(
            room_id=str(room_id),
            user_id=str(user_id) if user_id else None,
            check_in_date=str(data.get('checkInDate') or ''),
            check_in_time=str(data.get('checkInTime') or ''),
            check_out_date=str(data.get('checkOutDate') or ''),
            check_out_time=str(data.get('checkOutTime') or ''),
        )

    def is_owned_by(self, requester_id):
        return bool(requester_id) and self.user_id == str(requester_id)

    def status_for(self, requester_id):
        """
        Своя бронь - даты и часы заезда/выезда, чужая - только дата освобождения
        """
        if self.is_owned_by(requester_id):
            return {
                'is_own': True,
                'title': 'Your Booking',
                'check_in_date': self.check_in_date,
                'check_in_time': self.check_in_time,
                'check_out_date': self.check_out_date,
                'check_out_time': self.check_out_time,
            }
        return {
            'is_own': False,
            'title': 'This room is currently booked',
            'available_from': self.check_out_date,
        }
