import json
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal

import httpx
from django.test import SimpleTestCase

from core.hotel_api import HotelServiceClient
from rooms.data_models import Room
from .data_models import BookingRequest
from .exceptions import BookingRejectedError, BookingServiceError, ConflictError, NetworkError
from .pricing import GSTOption, compute_price, nights
from .services import BookingSubmitter, price_request
from .validators import BookingValidator

TODAY = date(2030, 6, 10)


class NightsTestCase(SimpleTestCase):

    def test_nights_between_dates(self):
        self.assertEqual(nights(date(2030, 6, 10), date(2030, 6, 12)), 2)

    def test_nights_clamped_to_zero(self):
        """Выезд не позже заезда -> 0 ночей"""
        self.assertEqual(nights(date(2030, 6, 10), date(2030, 6, 10)), 0)
        self.assertEqual(nights(date(2030, 6, 12), date(2030, 6, 10)), 0)

    def test_nights_rounds_partial_day_up(self):
        check_in = datetime(2030, 6, 10, 12)
        check_out = datetime(2030, 6, 11, 13)
        self.assertEqual(nights(check_in, check_out), 2)


class PricingTestCase(SimpleTestCase):

    def test_without_gst_total_is_base(self):
        for rate, count in ((Decimal('5000'), 3), (Decimal('8000'), 2), (Decimal('7499.99'), 1)):
            with self.subTest(rate=rate):
                price = compute_price(rate, count, GSTOption.WITHOUT_GST)
                self.assertEqual(price.total_amount, rate * count)
                self.assertEqual(price.tax_amount, 0)
                self.assertEqual(price.gst_percent, 0)

    def test_high_slab_multiplier(self):
        """Цена от 7500: итог = база * 1.18"""
        for rate in (Decimal('7500'), Decimal('8000'), Decimal('12345.67')):
            with self.subTest(rate=rate):
                price = compute_price(rate, 3, GSTOption.WITH_GST)
                expected = rate * 3 * Decimal('1.18')
                self.assertLessEqual(abs(price.total_amount - expected), Decimal('0.01'))

    def test_low_slab_multiplier(self):
        for rate in (Decimal('1000'), Decimal('5000'), Decimal('7499.99')):
            with self.subTest(rate=rate):
                price = compute_price(rate, 2, GSTOption.WITH_GST)
                expected = rate * 2 * Decimal('1.12')
                self.assertLessEqual(abs(price.total_amount - expected), Decimal('0.01'))

    def test_cgst_equals_sgst(self):
        for rate in (Decimal('999.99'), Decimal('7500'), Decimal('10001.01')):
            with self.subTest(rate=rate):
                price = compute_price(rate, 3, GSTOption.WITH_GST)
                self.assertEqual(price.cgst, price.sgst)
                self.assertEqual(price.igst, 0)

    def test_igst_total_equals_gst_total(self):
        """IGST и CGST+SGST дают одинаковый итог"""
        for rate in (Decimal('100.05'), Decimal('4999.99'), Decimal('7500'), Decimal('9999.95')):
            for count in (1, 2, 7):
                with self.subTest(rate=rate, nights=count):
                    gst = compute_price(rate, count, GSTOption.WITH_GST)
                    igst = compute_price(rate, count, GSTOption.WITH_IGST)
                    self.assertEqual(igst.total_amount, gst.total_amount)
                    self.assertEqual(igst.cgst, 0)

    def test_total_is_base_plus_tax(self):
        for option in GSTOption:
            with self.subTest(option=option):
                price = compute_price(Decimal('6200.50'), 4, option)
                self.assertEqual(price.total_amount, price.base_amount + price.tax_amount)

    def test_scenario_intra_state(self):
        """8000 x 2 ночи, CGST+SGST"""
        price = compute_price(8000, 2, GSTOption.WITH_GST)

        self.assertEqual(price.nights, 2)
        self.assertEqual(price.base_amount, Decimal('16000'))
        self.assertEqual(price.gst_percent, 9)
        self.assertEqual(price.cgst, Decimal('1440'))
        self.assertEqual(price.sgst, Decimal('1440'))
        self.assertEqual(price.total_amount, Decimal('18880'))

    def test_scenario_inter_state(self):
        """5000 x 3 ночи, IGST"""
        price = compute_price(5000, 3, 'withIGST')

        self.assertEqual(price.base_amount, Decimal('15000'))
        self.assertEqual(price.gst_percent, 12)
        self.assertEqual(price.igst, Decimal('1800'))
        self.assertEqual(price.total_amount, Decimal('16800'))

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            compute_price(-1, 1, GSTOption.WITH_GST)
        with self.assertRaises(ValueError):
            compute_price(1000, -1, GSTOption.WITH_GST)
        with self.assertRaises(ValueError):
            compute_price(1000, 1, 'withVAT')


class BookingValidatorTestCase(SimpleTestCase):

    def setUp(self):
        self.validator = BookingValidator(today=TODAY)
        self.form = {
            'room_id': 'room-1',
            'guest_name': '  Asha Rao ',
            'guest_phone': '9876543210',
            'check_in_date': '2030-06-10',
            'check_out_date': '2030-06-11',
        }

    def fields_with_errors(self, result):
        return {error.field for error in result.errors}

    def test_valid_request_is_normalized(self):
        form = dict(self.form, guest_email='Asha@Example.com', guest_gst_number='22aaaaa0000a1z5')

        result = self.validator.validate(form, requester_id='u-1')

        self.assertTrue(result.is_valid)
        request = result.request
        self.assertEqual(request.guest_name, 'Asha Rao')
        self.assertEqual(request.guest_email, 'asha@example.com')
        self.assertEqual(request.guest_gst_number, '22AAAAA0000A1Z5')
        self.assertEqual(request.check_in_date, date(2030, 6, 10))
        self.assertEqual(request.check_in_hour, 12)
        self.assertEqual(request.check_out_hour, 11)
        self.assertEqual(request.gst_option, GSTOption.WITHOUT_GST)
        self.assertEqual(request.payment_method, 'cash')
        self.assertEqual(request.requester_id, 'u-1')

    def test_accepts_camel_case_form(self):
        result = self.validator.validate({
            'roomId': 'room-1',
            'userName': 'Asha',
            'userPhone': '9876543210',
            'checkInDate': '2030-06-10',
            'checkOutDate': '2030-06-12',
            'checkInTime': '02:00 PM',
            'checkOutTime': '10:00',
            'gstOption': 'withIGST',
            'paymentMethod': 'upi',
        })

        self.assertTrue(result.is_valid)
        self.assertEqual(result.request.check_in_hour, 14)
        self.assertEqual(result.request.check_out_hour, 10)
        self.assertEqual(result.request.gst_option, GSTOption.WITH_IGST)

    def test_same_day_stay_rejected(self):
        result = self.validator.validate(dict(self.form, check_out_date='2030-06-10'))

        self.assertFalse(result.is_valid)
        self.assertIn('check_out_date', self.fields_with_errors(result))

    def test_datetime_values_compared_by_date(self):
        result = self.validator.validate(dict(
            self.form,
            check_in_date=datetime(2030, 6, 10, 15, 30),
            check_out_date=datetime(2030, 6, 12, 9, 0),
        ))

        self.assertTrue(result.is_valid)
        self.assertEqual(result.request.check_in_date, date(2030, 6, 10))
        self.assertEqual(result.request.check_out_date, date(2030, 6, 12))

    def test_datetime_in_past_rejected(self):
        result = self.validator.validate(dict(self.form, check_in_date=datetime(2030, 6, 9, 23, 0)))

        self.assertEqual([e.kind for e in result.errors], ['past_date'])

    def test_next_day_stay_accepted(self):
        result = self.validator.validate(dict(self.form, check_out_date='2030-06-11'))

        self.assertTrue(result.is_valid)

    def test_check_in_in_past_rejected(self):
        result = self.validator.validate(dict(self.form, check_in_date='2030-06-09'))

        self.assertEqual([e.kind for e in result.errors], ['past_date'])
        self.assertEqual(result.errors[0].field, 'check_in_date')

    def test_phone_validation(self):
        rejected = self.validator.validate(dict(self.form, guest_phone='12345'))
        accepted = self.validator.validate(dict(self.form, guest_phone='9876543210'))

        self.assertEqual(self.fields_with_errors(rejected), {'guest_phone'})
        self.assertEqual(rejected.errors[0].kind, 'invalid_phone')
        self.assertTrue(accepted.is_valid)

    def test_gst_number_validation(self):
        rejected = self.validator.validate(dict(self.form, guest_gst_number='22AAAAA0000A1Z'))
        accepted = self.validator.validate(dict(self.form, guest_gst_number='22AAAAA0000A1Z5'))

        self.assertEqual(self.fields_with_errors(rejected), {'guest_gst_number'})
        self.assertTrue(accepted.is_valid)

    def test_optional_fields_skipped_when_empty(self):
        result = self.validator.validate(dict(self.form, guest_email='', guest_gst_number='  '))

        self.assertTrue(result.is_valid)

    def test_invalid_email(self):
        result = self.validator.validate(dict(self.form, guest_email='not-an-email'))

        self.assertEqual(self.fields_with_errors(result), {'guest_email'})

    def test_missing_required_fields_collected(self):
        """Все ошибки возвращаются списком, без исключений"""
        result = self.validator.validate({})

        self.assertIsNone(result.request)
        self.assertEqual(
            self.fields_with_errors(result),
            {'room_id', 'guest_name', 'guest_phone', 'check_in_date', 'check_out_date'},
        )

    def test_invalid_date_format(self):
        result = self.validator.validate(dict(self.form, check_in_date='10/06/2030'))

        self.assertEqual(self.fields_with_errors(result), {'check_in_date'})

    def test_invalid_choices_and_hours(self):
        result = self.validator.validate(dict(
            self.form, gst_option='withVAT', payment_method='cheque', check_in_hour='25:00'
        ))

        self.assertEqual(
            self.fields_with_errors(result),
            {'gst_option', 'payment_method', 'check_in_hour'},
        )

    def test_none_data_is_programming_error(self):
        with self.assertRaises(TypeError):
            self.validator.validate(None)


def make_request(**overrides):
    request = BookingRequest(
        room_id='room-1',
        requester_id='u-1',
        guest_name='Asha Rao',
        guest_phone='9876543210',
        check_in_date=date(2030, 6, 10),
        check_out_date=date(2030, 6, 12),
        check_in_hour=14,
        check_out_hour=11,
        gst_option=GSTOption.WITH_GST,
    )
    room = Room(id='room-1', rate=Decimal('8000'), branch_id='b1')
    return replace(price_request(request, room), **overrides)


def make_submitter(handler):
    return BookingSubmitter(api=HotelServiceClient(
        base_url='http://hotel.test/api/v1/hotel',
        transport=httpx.MockTransport(handler),
    ))


class BookingSubmitterTestCase(SimpleTestCase):

    def test_price_request_uses_room_rate_and_branch(self):
        request = make_request()

        self.assertEqual(request.branch_id, 'b1')
        self.assertEqual(request.price.total_amount, Decimal('18880'))

    def test_build_payload(self):
        payload = BookingSubmitter.build_payload(make_request())

        self.assertEqual(payload['roomId'], 'room-1')
        self.assertEqual(payload['branchId'], 'b1')
        self.assertEqual(payload['userId'], 'u-1')
        self.assertEqual(payload['checkInTime'], '14:00')
        self.assertEqual(payload['checkOutTime'], '11:00')
        self.assertEqual(payload['gstOption'], 'withGST')
        self.assertEqual(payload['cgst'], '1440.00')
        self.assertEqual(payload['totalPrice'], '18880.00')
        self.assertEqual(payload['paymentMethod'], 'cash')

    def test_build_payload_without_price(self):
        with self.assertRaises(ValueError):
            BookingSubmitter.build_payload(make_request(price=None))

    async def test_submit_success(self):
        sent = []

        def handler(request):
            sent.append(json.loads(request.content))
            return httpx.Response(201, json={'booking': {'_id': 'bk-1', 'status': 'confirmed', 'totalPrice': 18880}})

        booking = await make_submitter(handler).submit(make_request())

        self.assertEqual(booking.id, 'bk-1')
        self.assertEqual(booking.status, 'confirmed')
        self.assertEqual(booking.room_id, 'room-1')
        self.assertEqual(booking.total_amount, Decimal('18880'))
        self.assertEqual(sent[0]['checkInDate'], '2030-06-10')

    async def test_submit_conflict(self):
        """Слот заняли параллельно -> ConflictError"""
        submitter = make_submitter(lambda request: httpx.Response(
            409, json={'errorCode': 'SLOT_CONFLICT', 'message': 'Room already booked for this time'}
        ))

        with self.assertRaises(ConflictError) as ctx:
            await submitter.submit(make_request())

        self.assertEqual(ctx.exception.message, 'Room already booked for this time')
        self.assertFalse(ctx.exception.retryable)

    async def test_submit_other_client_error_is_conflict(self):
        submitter = make_submitter(lambda request: httpx.Response(400, json={'message': 'Room not available'}))

        with self.assertRaises(ConflictError):
            await submitter.submit(make_request())

    async def test_submit_validation_rejected(self):
        submitter = make_submitter(lambda request: httpx.Response(
            400, json={'errorCode': 'VALIDATION_ERROR', 'message': 'userPhone is invalid'}
        ))

        with self.assertRaises(BookingRejectedError) as ctx:
            await submitter.submit(make_request())

        self.assertEqual(ctx.exception.error_code, 'VALIDATION_ERROR')

    async def test_submit_network_error_is_retryable(self):
        def handler(request):
            raise httpx.ConnectTimeout('timed out', request=request)

        with self.assertRaises(NetworkError) as ctx:
            await make_submitter(handler).submit(make_request())

        self.assertTrue(ctx.exception.retryable)

    async def test_submit_server_error(self):
        submitter = make_submitter(lambda request: httpx.Response(500, text='Internal Server Error'))

        with self.assertRaises(BookingServiceError):
            await submitter.submit(make_request())

    async def test_submit_success_without_booking_id(self):
        submitter = make_submitter(lambda request: httpx.Response(200, json={'message': 'ok'}))

        with self.assertRaises(BookingServiceError):
            await submitter.submit(make_request())

    async def test_submit_success_with_unparsable_total(self):
        """Бронь создана, сумма в ответе не число -> берется наш расчет"""
        submitter = make_submitter(lambda request: httpx.Response(
            201, json={'_id': 'bk-2', 'totalPrice': 'N/A'}
        ))

        booking = await submitter.submit(make_request())

        self.assertEqual(booking.id, 'bk-2')
        self.assertEqual(booking.total_amount, Decimal('18880'))

    async def test_submit_success_with_null_total(self):
        submitter = make_submitter(lambda request: httpx.Response(
            201, json={'_id': 'bk-3', 'totalPrice': None}
        ))

        booking = await submitter.submit(make_request())

        self.assertEqual(booking.total_amount, Decimal('18880'))
