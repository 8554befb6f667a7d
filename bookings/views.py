import logging

import httpx
from asgiref.sync import async_to_sync
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.hotel_api import HotelServiceError, get_client
from rooms.cache import ListingCache
from rooms.data_models import Room
from .exceptions import BookingRejectedError, BookingServiceError, ConflictError, NetworkError
from .pricing import compute_price, nights
from .serializers import BookingSerializer, PriceBreakdownSerializer, QuoteSerializer
from .services import BookingSubmitter, price_request
from .validators import BookingValidator

logger = logging.getLogger(__name__)


class RoomLookupError(Exception):
    def __init__(self, response):
        super().__init__(response.data)
        self.response = response


class BookingViewSet(viewsets.ViewSet):
    """
    ViewSet брони комнаты: расчет цены и отправка заявки
    """
    permission_classes = [IsAuthenticated]

    def create(self, request):
        """
        POST /bookings - проверка, расчет и отправка брони
        """
        result = BookingValidator().validate(request.data, requester_id=self._requester_id(request.user))
        if not result.is_valid:
            return Response({
                'errors': result.errors_by_field(),
                'details': [
                    {'kind': e.kind, 'field': e.field, 'message': e.message} for e in result.errors
                ],
            }, status=status.HTTP_400_BAD_REQUEST)

        api = get_client()
        try:
            room = self._load_room(api, result.request.room_id)
        except RoomLookupError as e:
            return e.response

        booking_request = price_request(result.request, room)

        try:
            booking = async_to_sync(BookingSubmitter(api=api).submit)(booking_request)
        except ConflictError as e:
            return Response({
                'error': e.message,
                'code': e.code,
                'reselect': True,
            }, status=status.HTTP_409_CONFLICT)
        except NetworkError as e:
            return Response({
                'error': e.message,
                'code': e.code,
                'retryable': True,
            }, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        except BookingRejectedError as e:
            return Response({
                'error': e.message,
                'code': e.code,
                'error_code': e.error_code,
            }, status=status.HTTP_400_BAD_REQUEST)
        except BookingServiceError as e:
            return Response({
                'error': e.message,
                'code': e.code,
                'retryable': True,
            }, status=status.HTTP_502_BAD_GATEWAY)

        # доступность комнаты могла измениться
        ListingCache.invalidate('rooms')
        ListingCache.invalidate('rooms', room.branch_id)

        return Response({
            'booking': BookingSerializer(booking).data,
            'price': PriceBreakdownSerializer(booking_request.price).data,
            'room_name': room.display_name,
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='quote')
    def quote(self, request):
        """
        POST /bookings/quote - расчет стоимости по датам и налоговому режиму
        """
        serializer = QuoteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        try:
            room = self._load_room(get_client(), data['room_id'])
        except RoomLookupError as e:
            return e.response

        breakdown = compute_price(
            room.rate,
            nights(data['check_in_date'], data['check_out_date']),
            data['gst_option'],
        )
        return Response({
            'room_id': room.id,
            'rate': str(room.rate),
            'price': PriceBreakdownSerializer(breakdown).data,
        })

    @staticmethod
    def _requester_id(user):
        return user.hotel_user_id

    @staticmethod
    def _load_room(api, room_id):
        """
        Тариф, филиал и доступность всегда берутся из сервиса, не из формы
        """
        try:
            item = async_to_sync(api.get_room)(room_id)
        except httpx.HTTPError as e:
            logger.error(f"Ошибка получения комнаты {room_id}: {e!r}")
            raise RoomLookupError(Response(
                {'error': 'The hotel service is unavailable. Please try again later.', 'retryable': True},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            ))
        except HotelServiceError as e:
            logger.error(f"Непонятный ответ сервиса по комнате {room_id}: {e}")
            raise RoomLookupError(Response(
                {'error': 'The hotel service returned invalid room data.'},
                status=status.HTTP_502_BAD_GATEWAY,
            ))

        if item is None:
            raise RoomLookupError(Response({'error': 'Room not found'}, status=status.HTTP_404_NOT_FOUND))

        try:
            room = Room.from_api(item)
        except ValueError as e:
            logger.error(f"Некорректные данные комнаты {room_id}: {e}")
            raise RoomLookupError(Response(
                {'error': 'The hotel service returned invalid room data.'},
                status=status.HTTP_502_BAD_GATEWAY,
            ))

        if not room.is_available:
            raise RoomLookupError(Response(
                {'error': 'This room is not available for booking.', 'reselect': True},
                status=status.HTTP_409_CONFLICT,
            ))
        return room
