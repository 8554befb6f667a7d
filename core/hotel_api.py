import logging
from contextlib import asynccontextmanager
from datetime import date as date_type

import httpx
from django.conf import settings

from rooms.slots import parse_hour

logger = logging.getLogger(__name__)

# единый доступ к удаленному сервису отеля.


class HotelServiceError(Exception):
    """Сервис отеля ответил, но ответ не удалось разобрать"""


class AvailabilityFetchError(HotelServiceError):
    """Ответ сервиса по занятым часам не удалось разобрать"""


# Ошибки обращения к сервису отеля: сеть, статус >= 400, битый ответ
SERVICE_ERRORS = (httpx.HTTPError, HotelServiceError)


class HotelServiceClient:
    """
    Асинхронный клиент к API отеля (комнаты, филиалы, брони, профиль)
    """

    def __init__(self, base_url=None, timeout=None, availability_timeout=None, transport=None):
        config = getattr(settings, 'HOTEL_API', {})
        self.base_url = (base_url or config.get('BASE_URL', '')).rstrip('/')
        self.timeout = timeout or config.get('TIMEOUT', 15)
        self.availability_timeout = availability_timeout or config.get('AVAILABILITY_TIMEOUT', 5)
        # transport подменяется в тестах (httpx.MockTransport)
        self.transport = transport

    def session(self, timeout=None):
        """
        Новый httpx.AsyncClient; закрывать через async with
        """
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self.transport,
            headers={'Accept': 'application/json'},
        )

    @asynccontextmanager
    async def _session(self, session, timeout=None):
        if session is not None:
            yield session
            return
        async with self.session(timeout=timeout) as own_session:
            yield own_session

    async def booked_hours(self, room_id, date, session=None):
        """
        GET /room-booking/booked-slots -> список занятых часов комнаты на дату
        :raises httpx.HTTPError: сетевая ошибка или статус >= 400
        :raises AvailabilityFetchError: некорректный ответ
        """
        if isinstance(date, date_type):
            date = date.isoformat()

        async with self._session(session, timeout=self.availability_timeout) as client:
            response = await client.get(
                '/room-booking/booked-slots',
                params={'roomId': str(room_id), 'date': date},
            )
            response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise AvailabilityFetchError(f"Ответ не JSON для {room_id} на {date}") from e

        return self._parse_booked_hours(payload)

    @staticmethod
    def _parse_booked_hours(payload):
        if not isinstance(payload, dict) or not isinstance(payload.get('bookedHours'), list):
            raise AvailabilityFetchError(f"Нет поля bookedHours: {payload!r}")

        hours = set()
        for value in payload['bookedHours']:
            try:
                hours.add(parse_hour(value))
            except ValueError as e:
                raise AvailabilityFetchError(f"Некорректный час {value!r}") from e
        return frozenset(hours)

    async def create_booking(self, payload):
        """
        POST /room-booking. Статус ответа разбирает вызывающий код
        """
        async with self.session() as client:
            return await client.post('/room-booking', json=payload)

    async def list_rooms(self, branch_id=None):
        params = {'branchId': branch_id} if branch_id else None
        return await self._get_json('/room', params=params)

    async def get_room(self, room_id):
        """
        None, если комнаты нет (404)
        """
        try:
            return await self._get_json(f'/room/{room_id}')
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise

    async def active_booking(self, room_id):
        """
        GET /room-booking/room/<id>/active -> текущая бронь комнаты или None
        """
        try:
            payload = await self._get_json(f'/room-booking/room/{room_id}/active')
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise

        if isinstance(payload, dict) and isinstance(payload.get('booking'), dict):
            payload = payload['booking']
        if not payload:
            return None
        if not isinstance(payload, dict):
            raise HotelServiceError(f"Некорректная активная бронь комнаты {room_id}: {payload!r}")
        return payload

    async def list_branches(self):
        return await self._get_json('/branch')

    async def get_user(self, user_id):
        return await self._get_json(f'/user-auth/{user_id}')

    async def _get_json(self, path, params=None):
        """
        :raises httpx.HTTPError: сетевая ошибка или статус >= 400
        :raises HotelServiceError: тело ответа не JSON
        """
        async with self.session() as client:
            response = await client.get(path, params=params)
            response.raise_for_status()

        try:
            return response.json()
        except ValueError as e:
            raise HotelServiceError(f"Ответ {path} не JSON (статус {response.status_code})") from e


def get_client():
    """
    Клиент с настройками из settings.HOTEL_API
    """
    return HotelServiceClient()
