from unittest import mock

import httpx
from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.hotel_api import HotelServiceClient

User = get_user_model()


class ProfileAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()

    def test_profile_prefill_from_hotel_service(self):
        user = User.objects.create_user(username='asha', password='testpass123', remote_user_id='remote-42')
        self.client.force_authenticate(user)

        def handler(request):
            return httpx.Response(200, json={'name': 'Asha Rao', 'mobile': '9876543210', 'email': 'asha@example.com'})

        with mock.patch('auth_app.views.get_client', return_value=HotelServiceClient(
            base_url='http://hotel.test/api/v1/hotel', transport=httpx.MockTransport(handler),
        )):
            response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_id'], 'remote-42')
        self.assertEqual(response.data['phone'], '9876543210')

    def test_profile_prefill_falls_back_to_local(self):
        user = User.objects.create_user(
            username='ravi', password='testpass123', email='ravi@example.com', phone='9123456780',
        )
        self.client.force_authenticate(user)

        response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'ravi')
        self.assertEqual(response.data['phone'], '9123456780')
        self.assertEqual(response.data['user_id'], str(user.pk))

    def test_profile_prefill_non_json_reply(self):
        user = User.objects.create_user(
            username='asha', password='testpass123', phone='9876543210', remote_user_id='remote-42',
        )
        self.client.force_authenticate(user)

        with mock.patch('auth_app.views.get_client', return_value=HotelServiceClient(
            base_url='http://hotel.test/api/v1/hotel',
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text='<html>gateway</html>')),
        )):
            response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_id'], 'remote-42')
        self.assertEqual(response.data['phone'], '9876543210')
