import json
from datetime import timedelta
from unittest import mock

import httpx
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from core.hotel_api import HotelServiceClient
from rooms.cache import ListingCache

User = get_user_model()

ROOM = {'_id': 'room-1', 'price': 8000, 'isAvailable': True, 'branchId': {'_id': 'b1'}, 'floor': 'First Floor', 'roomNumber': '101'}
BOOKED_ROOM = dict(ROOM, _id='room-2', isAvailable=False)


class FakeBookingService:
    """Фейковый сервис: комнаты и POST /room-booking"""

    def __init__(self, booking_response=None, fail_network=False):
        if booking_response is None:
            booking_response = httpx.Response(
                201, json={'booking': {'_id': 'bk-1', 'status': 'confirmed', 'totalPrice': 18880}}
            )
        self.booking_response = booking_response
        self.fail_network = fail_network
        self.posted = []

    def __call__(self, request):
        path = request.url.path.replace('/api/v1/hotel', '')
        if path == '/room/room-1':
            return httpx.Response(200, json=ROOM)
        if path == '/room/room-2':
            return httpx.Response(200, json=BOOKED_ROOM)
        if path == '/room-booking' and request.method == 'POST':
            if self.fail_network:
                raise httpx.ConnectError('connection reset', request=request)
            self.posted.append(json.loads(request.content))
            return self.booking_response
        return httpx.Response(404, json={'message': 'not found'})

    def client(self):
        return HotelServiceClient(
            base_url='http://hotel.test/api/v1/hotel',
            transport=httpx.MockTransport(self),
        )


class BookingAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(
            username='asha',
            email='asha@example.com',
            password='testpass123',
            remote_user_id='remote-42',
        )
        self.client.force_authenticate(self.user)

        self.check_in = timezone.localdate() + timedelta(days=1)
        self.check_out = self.check_in + timedelta(days=2)
        self.form = {
            'roomId': 'room-1',
            'userName': 'Asha Rao',
            'userPhone': '9876543210',
            'userEmail': 'asha@example.com',
            'checkInDate': self.check_in.isoformat(),
            'checkOutDate': self.check_out.isoformat(),
            'checkInTime': '14:00',
            'checkOutTime': '11:00',
            'gstOption': 'withGST',
            'paymentMethod': 'upi',
        }

    def use_service(self, service):
        patcher = mock.patch('bookings.views.get_client', side_effect=service.client)
        patcher.start()
        self.addCleanup(patcher.stop)
        return service

    def test_create_booking(self):
        """Цена считается по тарифу комнаты из сервиса, а не из формы"""
        service = self.use_service(FakeBookingService())

        response = self.client.post('/api/bookings/', dict(self.form, totalPrice='1'), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['booking']['id'], 'bk-1')
        self.assertEqual(response.data['price']['total_amount'], '18880.00')
        self.assertEqual(response.data['room_name'], 'First Floor - Room 101')

        payload = service.posted[0]
        self.assertEqual(payload['userId'], 'remote-42')
        self.assertEqual(payload['branchId'], 'b1')
        self.assertEqual(payload['totalPrice'], '18880.00')
        self.assertEqual(payload['cgst'], '1440.00')
        self.assertEqual(payload['checkInTime'], '14:00')

    def test_create_booking_invalidates_room_listing(self):
        self.use_service(FakeBookingService())
        ListingCache.set('rooms', [{'id': 'room-1'}], 'b1')

        response = self.client.post('/api/bookings/', self.form, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(ListingCache.get('rooms', 'b1'))

    def test_create_booking_requires_auth(self):
        self.client.force_authenticate(None)

        response = self.client.post('/api/bookings/', self.form, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_booking_validation_errors(self):
        service = self.use_service(FakeBookingService())

        response = self.client.post(
            '/api/bookings/',
            dict(self.form, userPhone='12345', checkOutDate=self.check_in.isoformat()),
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('guest_phone', response.data['errors'])
        self.assertIn('check_out_date', response.data['errors'])
        self.assertEqual(service.posted, [])

    def test_create_booking_conflict(self):
        """Слот занят другим клиентом -> 409 и просьба выбрать заново"""
        self.use_service(FakeBookingService(booking_response=httpx.Response(
            409, json={'errorCode': 'SLOT_CONFLICT', 'message': 'Room already booked for these hours'}
        )))

        response = self.client.post('/api/bookings/', self.form, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(response.data['reselect'])
        self.assertEqual(response.data['error'], 'Room already booked for these hours')

    def test_create_booking_network_error(self):
        self.use_service(FakeBookingService(fail_network=True))

        response = self.client.post('/api/bookings/', self.form, format='json')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertTrue(response.data['retryable'])

    def test_create_booking_service_error(self):
        self.use_service(FakeBookingService(booking_response=httpx.Response(500, text='boom')))

        response = self.client.post('/api/bookings/', self.form, format='json')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    def test_create_booking_unavailable_room(self):
        service = self.use_service(FakeBookingService())

        response = self.client.post('/api/bookings/', dict(self.form, roomId='room-2'), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(service.posted, [])

    def test_create_booking_unknown_room(self):
        self.use_service(FakeBookingService())

        response = self.client.post('/api/bookings/', dict(self.form, roomId='missing'), format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_quote(self):
        self.use_service(FakeBookingService())

        response = self.client.post('/api/bookings/quote/', {
            'room_id': 'room-1',
            'check_in_date': self.check_in.isoformat(),
            'check_out_date': self.check_out.isoformat(),
            'gst_option': 'withIGST',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        price = response.data['price']
        self.assertEqual(price['nights'], 2)
        self.assertEqual(price['base_amount'], '16000.00')
        self.assertEqual(price['igst'], '2880.00')
        self.assertEqual(price['gst_percent'], '18.00')
        self.assertEqual(price['total_amount'], '18880.00')

    def test_quote_zero_nights(self):
        self.use_service(FakeBookingService())

        response = self.client.post('/api/bookings/quote/', {
            'room_id': 'room-1',
            'check_in_date': self.check_in.isoformat(),
            'check_out_date': self.check_in.isoformat(),
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('check_out_date', response.data)

    def test_non_json_service_reply(self):
        """HTML-страница шлюза вместо комнаты -> 502, заявка не уходит"""
        html = HotelServiceClient(
            base_url='http://hotel.test',
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text='<html>gateway</html>')),
        )
        quote = {
            'room_id': 'room-1',
            'check_in_date': self.check_in.isoformat(),
            'check_out_date': self.check_out.isoformat(),
        }

        with mock.patch('bookings.views.get_client', return_value=html):
            quote_response = self.client.post('/api/bookings/quote/', quote, format='json')
            create_response = self.client.post('/api/bookings/', self.form, format='json')

        self.assertEqual(quote_response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(create_response.status_code, status.HTTP_502_BAD_GATEWAY)
