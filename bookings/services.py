import logging
from dataclasses import replace

import httpx

from core.hotel_api import get_client
from rooms.slots import hour_value
from .data_models import Booking
from .exceptions import BookingRejectedError, BookingServiceError, ConflictError, NetworkError
from .pricing import compute_price, nights

logger = logging.getLogger(__name__)

# errorCode сервиса, означающие ошибку данных, а не занятый слот
VALIDATION_ERROR_CODES = {'VALIDATION_ERROR', 'INVALID_REQUEST', 'INVALID_INPUT'}


def price_request(request, room):
    """
    Считает цену заявки по тарифу комнаты из сервиса и подставляет филиал
    """
    breakdown = compute_price(
        room.rate,
        nights(request.check_in_date, request.check_out_date),
        request.gst_option,
    )
    return replace(request, price=breakdown, branch_id=room.branch_id or request.branch_id)


class BookingSubmitter:
    """
    Отправка проверенной и рассчитанной заявки в сервис отеля.
    Повторы не делает: решение о повторной отправке за вызывающим кодом
    """

    def __init__(self, api=None):
        self.api = api if api is not None else get_client()

    @staticmethod
    def build_payload(request):
        if request.price is None:
            raise ValueError('Заявка без расчета цены не может быть отправлена')

        price = request.price
        return {
            'roomId': request.room_id,
            'branchId': request.branch_id,
            'userId': request.requester_id,
            'userName': request.guest_name,
            'userPhone': request.guest_phone,
            'userEmail': request.guest_email,
            'gstNumber': request.guest_gst_number,
            'checkInDate': request.check_in_date.isoformat(),
            'checkOutDate': request.check_out_date.isoformat(),
            'checkInTime': hour_value(request.check_in_hour),
            'checkOutTime': hour_value(request.check_out_hour),
            'gstOption': str(request.gst_option),
            'paymentMethod': str(request.payment_method),
            'nights': price.nights,
            'baseAmount': str(price.base_amount),
            'gstPercent': str(price.gst_percent),
            'cgst': str(price.cgst),
            'sgst': str(price.sgst),
            'igst': str(price.igst),
            'taxAmount': str(price.tax_amount),
            'totalPrice': str(price.total_amount),
        }

    async def submit(self, request):
        """
        :return: Booking
        :raises NetworkError: сеть/таймаут, можно повторить
        :raises ConflictError: слот занят другим клиентом
        :raises BookingRejectedError: сервис отклонил данные
        :raises BookingServiceError: ошибка сервиса
        """
        payload = self.build_payload(request)
        logger.info(
            f"Отправка брони: комната {request.room_id}, "
            f"{payload['checkInDate']} {payload['checkInTime']} - "
            f"{payload['checkOutDate']} {payload['checkOutTime']}, сумма {payload['totalPrice']}"
        )

        try:
            response = await self.api.create_booking(payload)
        except httpx.TransportError as e:
            logger.warning(f"Сеть недоступна при отправке брони {request.room_id}: {e!r}")
            raise NetworkError('Could not reach the booking service. Please try again.') from e

        return self._interpret(response, request)

    def _interpret(self, response, request):
        data = self._json(response)
        status_code = response.status_code

        if response.is_success:
            try:
                booking = Booking.from_api(data, request)
            except ValueError as e:
                logger.error(f"Непонятный ответ сервиса на бронь {request.room_id}: {e}")
                raise BookingServiceError(
                    'The booking service returned an unexpected response.', status_code=status_code
                ) from e
            logger.info(f"Бронь {booking.id} создана для комнаты {booking.room_id}")
            return booking

        error_code = data.get('errorCode') if isinstance(data, dict) else None
        message = data.get('message') if isinstance(data, dict) else None

        if 400 <= status_code < 500:
            if status_code != 409 and error_code in VALIDATION_ERROR_CODES:
                logger.info(f"Сервис отклонил бронь {request.room_id}: {error_code} {message}")
                raise BookingRejectedError(
                    message or 'The booking request was rejected.',
                    error_code=error_code, status_code=status_code,
                )
            logger.info(f"Конфликт брони {request.room_id}: {status_code} {error_code} {message}")
            raise ConflictError(
                message or 'The selected time is no longer available. Please choose another date or hour.',
                error_code=error_code, status_code=status_code,
            )

        logger.error(f"Ошибка сервиса при бронировании {request.room_id}: {status_code} {message}")
        raise BookingServiceError(
            message or 'Booking failed. Please try again.',
            error_code=error_code, status_code=status_code,
        )

    @staticmethod
    def _json(response):
        try:
            return response.json()
        except ValueError:
            return None
