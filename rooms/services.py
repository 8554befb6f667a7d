import asyncio
import calendar
import logging
from datetime import date as date_type

from django.utils import timezone

from core.hotel_api import SERVICE_ERRORS, get_client
from .cache import OccupancyCache
from .data_models import ActiveBooking, DayOccupancy

logger = logging.getLogger(__name__)

# Ошибки, при которых день считается свободным (fail-open)
FETCH_ERRORS = SERVICE_ERRORS


def month_days(year, month):
    """
    Все даты месяца по порядку
    """
    _, days_in_month = calendar.monthrange(year, month)
    return [date_type(year, month, day) for day in range(1, days_in_month + 1)]


def is_date_selectable(day, today=None):
    """
    Дату можно выбрать, если она не в прошлом и не занята целиком.
    Частичная занятость выбор не блокирует
    """
    if today is None:
        today = timezone.localdate()
    day_date = date_type.fromisoformat(day.date)
    return day_date >= today and not day.is_fully_booked


class AvailabilityStore:
    """
    Занятость комнат по часам: день и агрегат за месяц.
    Один экземпляр на экран; данные не переживают сессию просмотра
    """

    def __init__(self, api=None, cache=None):
        self.api = api if api is not None else get_client()
        self.cache = cache if cache is not None else OccupancyCache()

    async def fetch_booked_hours(self, room_id, date, session=None):
        """
        Занятые часы комнаты на дату.
        При ошибке сети или некорректном ответе возвращает пустое множество:
        окончательную проверку конфликта делает сервис при бронировании
        """
        try:
            return await self.api.booked_hours(room_id, date, session=session)
        except FETCH_ERRORS as e:
            logger.warning(f"Не удалось получить занятость {room_id} на {date}: {e!r}")
            return frozenset()

    async def fetch_month_occupancy(self, room_id, year, month, refresh=False):
        """
        Занятость по всем дням месяца: ISO-дата -> DayOccupancy.
        Запросы по дням идут параллельно; упавший день считается свободным.
        Повторный запрос того же месяца берется из кеша, пока не передан refresh
        """
        key = self.cache.switch_view(room_id, year, month)
        if not refresh:
            cached = self.cache.get_month(room_id, year, month)
            # дни, не загрузившиеся в прошлый раз, запрашиваются заново
            if cached is not None and not any(day.fetch_failed for day in cached.values()):
                return cached

        days = month_days(year, month)

        async with self.api.session(timeout=self.api.availability_timeout) as session:
            results = await asyncio.gather(
                *(self.api.booked_hours(room_id, day, session=session) for day in days),
                return_exceptions=True,
            )

        occupancy = {}
        failed = []
        for day, result in zip(days, results):
            iso_date = day.isoformat()
            if isinstance(result, Exception):
                failed.append(iso_date)
                if isinstance(result, FETCH_ERRORS):
                    logger.warning(f"Занятость {room_id} на {iso_date} недоступна: {result!r}")
                else:
                    logger.error(f"Непредвиденная ошибка занятости {room_id} на {iso_date}: {result!r}")
                occupancy[iso_date] = DayOccupancy(room_id=str(room_id), date=iso_date, fetch_failed=True)
            elif isinstance(result, BaseException):
                raise result
            else:
                occupancy[iso_date] = DayOccupancy(room_id=str(room_id), date=iso_date, booked_hours=result)

        if failed:
            logger.info(f"Месяц {year}-{month:02d} для {room_id}: {len(failed)} дней без данных")

        self.cache.store(key, occupancy)
        return occupancy

    async def fetch_day(self, room_id, date):
        """
        Свежая занятость одного дня (для выбора часа)
        """
        if isinstance(date, date_type):
            date = date.isoformat()
        hours = await self.fetch_booked_hours(room_id, date)
        return DayOccupancy(room_id=str(room_id), date=date, booked_hours=hours)

    async def is_hour_available(self, room_id, date, hour):
        """
        Повторная проверка часа в момент выбора. Подсказка, не блокировка
        """
        day = await self.fetch_day(room_id, date)
        return day.is_hour_available(hour)

    async def fetch_active_booking(self, room_id):
        """
        Текущая бронь комнаты или None. Недоступность сервиса не мешает
        показать комнату, поэтому ошибка тоже дает None
        """
        try:
            data = await self.api.active_booking(room_id)
        except FETCH_ERRORS as e:
            logger.warning(f"Не удалось получить активную бронь {room_id}: {e!r}")
            return None
        if data is None:
            return None
        return ActiveBooking.from_api(data, room_id)
