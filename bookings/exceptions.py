class BookingError(Exception):
    """
    Базовая ошибка отправки брони
    """
    code = 'booking_error'
    retryable = False

    def __init__(self, message, error_code=None, status_code=None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code


class NetworkError(BookingError):
    """Сервис недоступен; заявку можно отправить повторно без изменений"""
    code = 'network_error'
    retryable = True


class ConflictError(BookingError):
    """Слот заняли раньше нас; нужно выбрать другую дату или час"""
    code = 'slot_conflict'


class BookingRejectedError(BookingError):
    """Сервис отклонил данные заявки"""
    code = 'rejected'


class BookingServiceError(BookingError):
    """Ошибка на стороне сервиса или непонятный ответ"""
    code = 'service_error'
