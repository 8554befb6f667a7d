import logging

from asgiref.sync import async_to_sync
from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.hotel_api import SERVICE_ERRORS, get_client
from .cache import ListingCache
from .data_models import Branch, Room
from .serializers import (
    AvailabilityQuerySerializer, BranchSerializer, DayOccupancySerializer,
    OccupancyQuerySerializer, RoomSerializer, SlotAvailabilitySerializer,
    TimeSlotSerializer,
)
from .services import AvailabilityStore
from .slots import generate_slots

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = {'error': 'The hotel service is unavailable. Please try again later.'}


def requester_id(user):
    """id пользователя в сервисе отеля; None для анонимного"""
    if not user.is_authenticated:
        return None
    return user.hotel_user_id


def parse_rooms(items):
    """Список комнат из ответа сервиса; битые записи пропускаются"""
    if not isinstance(items, list):
        logger.error(f"Список комнат не является массивом: {items!r}")
        return []

    rooms = []
    for item in items:
        try:
            rooms.append(Room.from_api(item))
        except (ValueError, AttributeError) as e:
            logger.warning(f"Пропущена некорректная комната: {e}")
    return rooms


class TimeSlotListView(APIView):
    """
    GET /slots - сетка из 24 часовых слотов
    """
    permission_classes = [AllowAny]

    def get(self, request):
        return Response(TimeSlotSerializer(generate_slots(), many=True).data)


class BranchViewSet(viewsets.ViewSet):
    permission_classes = [AllowAny]

    def list(self, request):
        """
        GET /branches - список филиалов
        """
        cached_data = ListingCache.get('branches')
        if cached_data is not None:
            return Response(cached_data)

        try:
            items = async_to_sync(get_client().list_branches)()
        except SERVICE_ERRORS as e:
            logger.error(f"Ошибка получения филиалов: {e!r}")
            return Response(SERVICE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        if not isinstance(items, list):
            logger.error(f"Список филиалов не является массивом: {items!r}")
            items = []
        branches = [Branch.from_api(item) for item in items if isinstance(item, dict)]
        data = BranchSerializer(branches, many=True).data
        ListingCache.set('branches', data)
        return Response(data)


class RoomViewSet(viewsets.ViewSet):
    """
    ViewSet комнат: список, детали, занятость по месяцу и по часам дня
    """

    def get_permissions(self):
        """
        Просмотр комнат доступен всем, занятость - только после входа
        """
        if self.action in ['list', 'retrieve']:
            permission_classes = [AllowAny]
        else:
            permission_classes = [IsAuthenticated]
        return [permission() for permission in permission_classes]

    def list(self, request):
        """
        GET /rooms?branch=<id> - список комнат
        """
        branch_id = request.query_params.get('branch') or None
        cached_data = ListingCache.get('rooms', branch_id)
        if cached_data is not None:
            return Response(cached_data)

        try:
            items = async_to_sync(get_client().list_rooms)(branch_id)
        except SERVICE_ERRORS as e:
            logger.error(f"Ошибка получения комнат (филиал {branch_id}): {e!r}")
            return Response(SERVICE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        data = RoomSerializer(parse_rooms(items), many=True).data
        ListingCache.set('rooms', data, branch_id)
        return Response(data)

    def retrieve(self, request, pk=None):
        """
        GET /rooms/{id} - детали комнаты
        Текущая бронь комнаты: владельцу с датами, остальным только статус
        """
        api = get_client()
        try:
            item = async_to_sync(api.get_room)(pk)
        except SERVICE_ERRORS as e:
            logger.error(f"Ошибка получения комнаты {pk}: {e!r}")
            return Response(SERVICE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        if item is None:
            return Response({'error': 'Room not found'}, status=status.HTTP_404_NOT_FOUND)

        try:
            room = Room.from_api(item)
        except ValueError as e:
            logger.error(f"Некорректные данные комнаты {pk}: {e}")
            return Response(SERVICE_UNAVAILABLE, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        active = async_to_sync(AvailabilityStore(api=api).fetch_active_booking)(room.id)

        data = RoomSerializer(room).data
        data['active_booking'] = active.status_for(requester_id(request.user)) if active else None
        data['can_book'] = room.is_available and active is None
        return Response(data)

    @action(detail=True, methods=['get'], url_path='occupancy')
    def occupancy(self, request, pk=None):
        """
        GET /rooms/{id}/occupancy?year=YYYY&month=M
        Занятость по дням месяца для календаря
        """
        query = OccupancyQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

        year, month = query.validated_data['year'], query.validated_data['month']
        store = AvailabilityStore(api=get_client())
        occupancy = async_to_sync(store.fetch_month_occupancy)(pk, year, month)

        days = DayOccupancySerializer(
            occupancy.values(),
            many=True,
            context={'today': timezone.localdate()},
        ).data

        return Response({
            'room_id': str(pk),
            'year': year,
            'month': month,
            'days': days,
        })

    @action(detail=True, methods=['get'], url_path='availability')
    def availability(self, request, pk=None):
        """
        GET /rooms/{id}/availability?date=YYYY-MM-DD
        Свежая занятость часов на дату (проверяется в момент выбора часа)
        """
        if not request.query_params.get('date'):
            return Response(
                {'error': 'The date parameter is required (YYYY-MM-DD)'},
                status=status.HTTP_400_BAD_REQUEST
            )

        query = AvailabilityQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

        date = query.validated_data['date']

        # Проверяем, что дата не в прошлом
        if date < timezone.localdate():
            return Response(
                {'error': 'Availability cannot be requested for a past date'},
                status=status.HTTP_400_BAD_REQUEST
            )

        store = AvailabilityStore(api=get_client())
        day = async_to_sync(store.fetch_day)(pk, date)

        slots = [
            {
                'hour': slot.hour,
                'value': slot.value,
                'label': slot.label,
                'is_available': day.is_hour_available(slot.hour),
            }
            for slot in generate_slots()
        ]

        return Response({
            'room_id': str(pk),
            'date': day.date,
            'has_bookings': day.has_bookings,
            'is_fully_booked': day.is_fully_booked,
            'slots': SlotAvailabilitySerializer(slots, many=True).data,
            'available_slots': len([s for s in slots if s['is_available']]),
            'total_slots': len(slots),
        })
