from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from django.core.exceptions import ValidationError
from django.core.validators import EmailValidator, RegexValidator
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from rooms.slots import parse_hour
from .data_models import BookingRequest, PaymentMethod
from .pricing import GSTOption

DEFAULT_CHECK_IN_HOUR = 12
DEFAULT_CHECK_OUT_HOUR = 11


@dataclass(frozen=True)
class FieldError:
    """Ошибка одного поля формы"""
    kind: str
    field: str
    message: str


@dataclass
class ValidationResult:
    request: Optional[BookingRequest] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def is_valid(self):
        return not self.errors and self.request is not None

    def errors_by_field(self):
        grouped = {}
        for error in self.errors:
            grouped.setdefault(error.field, []).append(error.message)
        return grouped


phone_validator = RegexValidator(
    regex=r'^[0-9]{10}$',
    message=_('Enter a valid 10-digit phone number.'),
    code='invalid_phone',
)

gst_number_validator = RegexValidator(
    regex=r'^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$',
    message=_('Enter a valid 15-character GST number.'),
    code='invalid_gst_number',
)

email_validator = EmailValidator(
    message=_('Enter a valid email address.'),
    code='invalid_email',
)


class StayDatesValidator:
    """
    Проверка дат заезда и выезда (сравнение только по датам)
    """

    def __init__(self, today=None):
        self.today = today

    def __call__(self, check_in, check_out):
        today = self.today or timezone.localdate()

        if check_in < today:
            raise ValidationError(
                _('Check-in date %(check_in)s is in the past.'),
                code='past_date',
                params={'check_in': check_in.isoformat(), 'field': 'check_in_date'},
            )

        if check_out <= check_in:
            raise ValidationError(
                _('Check-out date must be after check-in date.'),
                code='invalid_range',
                params={'field': 'check_out_date'},
            )


class BookingValidator:
    """
    Проверяет форму брони до отправки.
    Ожидаемые ошибки не бросает: возвращает ValidationResult со списком FieldError
    """

    # Ключи формы -> поля BookingRequest; принимаем и camelCase клиента
    FIELD_ALIASES = {
        'roomId': 'room_id',
        'userName': 'guest_name',
        'userPhone': 'guest_phone',
        'userEmail': 'guest_email',
        'gstNumber': 'guest_gst_number',
        'checkInDate': 'check_in_date',
        'checkOutDate': 'check_out_date',
        'checkInTime': 'check_in_hour',
        'checkOutTime': 'check_out_hour',
        'gstOption': 'gst_option',
        'paymentMethod': 'payment_method',
    }

    def __init__(self, today=None):
        self.today = today

    def validate(self, data, requester_id=None):
        """
        :param data: dict с полями формы
        :param requester_id: id пользователя в сервисе отеля
        :return: ValidationResult
        """
        if data is None:
            raise TypeError('Данные формы обязательны')

        form = self._normalize_keys(data)
        errors = []

        room_id = self._text(form.get('room_id'))
        if not room_id:
            errors.append(FieldError('required', 'room_id', str(_('Select a room.'))))

        guest_name = self._text(form.get('guest_name'))
        if not guest_name:
            errors.append(FieldError('required', 'guest_name', str(_('Guest name is required.'))))

        guest_phone = self._text(form.get('guest_phone')).replace(' ', '')
        if not guest_phone:
            errors.append(FieldError('required', 'guest_phone', str(_('Phone number is required.'))))
        else:
            self._run(phone_validator, guest_phone, 'guest_phone', errors)

        guest_email = self._text(form.get('guest_email')).lower()
        if guest_email:
            self._run(email_validator, guest_email, 'guest_email', errors)

        gst_number = self._text(form.get('guest_gst_number')).upper()
        if gst_number:
            self._run(gst_number_validator, gst_number, 'guest_gst_number', errors)

        check_in = self._date(form.get('check_in_date'), 'check_in_date', errors)
        check_out = self._date(form.get('check_out_date'), 'check_out_date', errors)
        if check_in and check_out:
            try:
                StayDatesValidator(today=self.today)(check_in, check_out)
            except ValidationError as e:
                errors.append(FieldError(e.code, e.params['field'], self._message(e)))

        check_in_hour = self._hour(form.get('check_in_hour'), DEFAULT_CHECK_IN_HOUR, 'check_in_hour', errors)
        check_out_hour = self._hour(form.get('check_out_hour'), DEFAULT_CHECK_OUT_HOUR, 'check_out_hour', errors)

        gst_option = self._choice(form.get('gst_option'), GSTOption, GSTOption.WITHOUT_GST, 'gst_option', errors)
        payment_method = self._choice(
            form.get('payment_method'), PaymentMethod, PaymentMethod.CASH, 'payment_method', errors
        )

        if errors:
            return ValidationResult(errors=errors)

        return ValidationResult(request=BookingRequest(
            room_id=room_id,
            requester_id=str(requester_id) if requester_id else None,
            guest_name=guest_name,
            guest_phone=guest_phone,
            guest_email=guest_email,
            guest_gst_number=gst_number,
            check_in_date=check_in,
            check_out_date=check_out,
            check_in_hour=check_in_hour,
            check_out_hour=check_out_hour,
            gst_option=gst_option,
            payment_method=payment_method,
        ))

    def _normalize_keys(self, data):
        form = {}
        for key, value in data.items():
            form[self.FIELD_ALIASES.get(key, key)] = value
        return form

    @staticmethod
    def _text(value):
        if value is None:
            return ''
        return str(value).strip()

    @staticmethod
    def _message(error):
        return str(error.message % error.params) if error.params else str(error.message)

    def _run(self, validator, value, field_name, errors):
        try:
            validator(value)
        except ValidationError as e:
            errors.append(FieldError(e.code or 'invalid', field_name, str(e.messages[0])))

    def _date(self, value, field_name, errors):
        # datetime - подкласс date, сравнивать с today его нельзя
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        value = self._text(value)
        if not value:
            errors.append(FieldError('required', field_name, str(_('Select a date.'))))
            return None
        try:
            return date.fromisoformat(value)
        except ValueError:
            errors.append(FieldError('invalid', field_name, str(_('Use the YYYY-MM-DD date format.'))))
            return None

    def _hour(self, value, default, field_name, errors):
        if value is None or value == '':
            return default
        try:
            return parse_hour(value)
        except ValueError:
            errors.append(FieldError('invalid', field_name, str(_('Select an hour between 00:00 and 23:00.'))))
            return default

    def _choice(self, value, choices, default, field_name, errors):
        value = self._text(value)
        if not value:
            return default
        if value not in choices.values:
            errors.append(FieldError(
                'invalid_choice', field_name,
                str(_('Choose one of: %(choices)s.') % {'choices': ', '.join(choices.values)}),
            ))
            return default
        return choices(value)
