from datetime import timedelta
from unittest import mock

import httpx
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from core.hotel_api import HotelServiceClient

User = get_user_model()

ROOMS = [
    {'_id': 'room-1', 'price': 8000, 'isAvailable': True, 'branchId': 'b1', 'floor': 'First Floor', 'roomNumber': '101'},
    {'_id': 'room-2', 'price': 5000, 'isAvailable': False, 'branchId': {'_id': 'b1'}, 'floor': 'Ground'},
    {'price': 100},
]


class FakeHotelService:
    """Фейковый сервис отеля для httpx.MockTransport"""

    def __init__(self, booked=None, active=None):
        self.booked = booked or {}
        self.active = active or {}
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        path = request.url.path.replace('/api/v1/hotel', '')

        if path == '/room-booking/booked-slots':
            day = request.url.params['date']
            return httpx.Response(200, json={'bookedHours': self.booked.get(day, [])})
        if path == '/room':
            return httpx.Response(200, json=ROOMS)
        if path == '/room/room-1':
            return httpx.Response(200, json=ROOMS[0])
        if path.startswith('/room-booking/room/') and path.endswith('/active'):
            room_id = path.split('/')[3]
            if room_id in self.active:
                return httpx.Response(200, json=self.active[room_id])
            return httpx.Response(404, json={'message': 'no active booking'})
        if path == '/branch':
            return httpx.Response(200, json=[{'_id': 'b1', 'name': 'MG Road', 'address': 'Bengaluru'}])
        return httpx.Response(404, json={'message': 'not found'})

    def client(self):
        return HotelServiceClient(
            base_url='http://hotel.test/api/v1/hotel',
            transport=httpx.MockTransport(self),
        )


class RoomAPITestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.user = User.objects.create_user(
            username='guest',
            email='guest@example.com',
            password='testpass123',
        )
        self.tomorrow = timezone.localdate() + timedelta(days=1)
        self.service = FakeHotelService(booked={self.tomorrow.isoformat(): [12, 13, 14]})

        patcher = mock.patch('rooms.views.get_client', side_effect=self.service.client)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_get_slots(self):
        """Сетка слотов доступна без входа"""
        response = self.client.get('/api/slots/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 24)
        self.assertEqual(response.data[13]['value'], '13:00')
        self.assertEqual(response.data[13]['label'], '1:00 PM')

    def test_get_rooms_list(self):
        """Некорректные записи пропускаются, список кешируется"""
        response = self.client.get('/api/rooms/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([room['id'] for room in response.data], ['room-1', 'room-2'])
        self.assertEqual(response.data[0]['display_name'], 'First Floor - Room 101')
        self.assertEqual(response.data[1]['branch_id'], 'b1')

        self.client.get('/api/rooms/')
        room_requests = [r for r in self.service.requests if r.url.path.endswith('/room')]
        self.assertEqual(len(room_requests), 1)

    def test_get_rooms_list_service_down(self):
        def down(request):
            raise httpx.ConnectError('down', request=request)

        with mock.patch('rooms.views.get_client', return_value=HotelServiceClient(
            base_url='http://hotel.test', transport=httpx.MockTransport(down),
        )):
            response = self.client.get('/api/rooms/')

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_get_branches(self):
        response = self.client.get('/api/branches/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['name'], 'MG Road')

    def test_get_room_detail(self):
        response = self.client.get('/api/rooms/room-1/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rate'], '8000.00')

    def test_get_room_detail_without_active_booking(self):
        response = self.client.get('/api/rooms/room-1/')

        self.assertIsNone(response.data['active_booking'])
        self.assertTrue(response.data['can_book'])

    def test_get_room_detail_own_active_booking(self):
        """Своя текущая бронь показывается с датами и часами"""
        self.service.active['room-1'] = {
            'userId': 'remote-7',
            'checkInDate': '2030-05-10',
            'checkInTime': '14:00',
            'checkOutDate': '2030-05-12',
            'checkOutTime': '11:00',
        }
        owner = User.objects.create_user(username='owner', password='testpass123', remote_user_id='remote-7')
        self.client.force_authenticate(owner)

        response = self.client.get('/api/rooms/room-1/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        booking = response.data['active_booking']
        self.assertTrue(booking['is_own'])
        self.assertEqual(booking['check_in_time'], '14:00')
        self.assertEqual(booking['check_out_date'], '2030-05-12')
        self.assertFalse(response.data['can_book'])

    def test_get_room_detail_other_active_booking_is_masked(self):
        self.service.active['room-1'] = {
            'userId': 'remote-7',
            'checkInDate': '2030-05-10',
            'checkInTime': '14:00',
            'checkOutDate': '2030-05-12',
            'checkOutTime': '11:00',
        }

        for user in (None, self.user):
            with self.subTest(user=user):
                self.client.force_authenticate(user)

                response = self.client.get('/api/rooms/room-1/')

                booking = response.data['active_booking']
                self.assertFalse(booking['is_own'])
                self.assertEqual(booking['title'], 'This room is currently booked')
                self.assertEqual(booking['available_from'], '2030-05-12')
                self.assertNotIn('check_in_time', booking)
                self.assertFalse(response.data['can_book'])

    def test_non_json_service_reply(self):
        """HTML-страница шлюза вместо JSON -> 503, а не 500"""
        html = HotelServiceClient(
            base_url='http://hotel.test',
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text='<html>gateway</html>')),
        )

        with mock.patch('rooms.views.get_client', return_value=html):
            for url in ('/api/rooms/', '/api/branches/', '/api/rooms/room-1/'):
                with self.subTest(url=url):
                    response = self.client.get(url)

                    self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_get_room_detail_not_found(self):
        response = self.client.get('/api/rooms/missing/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_occupancy_requires_auth(self):
        response = self.client.get('/api/rooms/room-1/occupancy/?year=2030&month=9')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_get_month_occupancy(self):
        """Занятость месяца для календаря"""
        self.client.force_authenticate(self.user)
        year, month = self.tomorrow.year, self.tomorrow.month

        response = self.client.get(f'/api/rooms/room-1/occupancy/?year={year}&month={month}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        days = {day['date']: day for day in response.data['days']}
        tomorrow = days[self.tomorrow.isoformat()]
        self.assertEqual(tomorrow['booked_hours'], [12, 13, 14])
        self.assertTrue(tomorrow['has_bookings'])
        self.assertFalse(tomorrow['is_fully_booked'])
        self.assertTrue(tomorrow['is_selectable'])

    def test_get_month_occupancy_invalid_month(self):
        self.client.force_authenticate(self.user)

        response = self.client.get('/api/rooms/room-1/occupancy/?year=2030&month=13')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_resource_availability(self):
        """Часы дня с отметкой занятости"""
        self.client.force_authenticate(self.user)

        response = self.client.get(f'/api/rooms/room-1/availability/?date={self.tomorrow.isoformat()}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_slots'], 24)
        self.assertEqual(response.data['available_slots'], 21)
        self.assertFalse(response.data['slots'][12]['is_available'])
        self.assertTrue(response.data['slots'][15]['is_available'])

    def test_get_resource_availability_no_date(self):
        self.client.force_authenticate(self.user)

        response = self.client.get('/api/rooms/room-1/availability/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_resource_availability_invalid_date(self):
        self.client.force_authenticate(self.user)

        response = self.client.get('/api/rooms/room-1/availability/?date=invalid-date')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_resource_availability_past_date(self):
        self.client.force_authenticate(self.user)
        yesterday = timezone.localdate() - timedelta(days=1)

        response = self.client.get(f'/api/rooms/room-1/availability/?date={yesterday.isoformat()}')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
