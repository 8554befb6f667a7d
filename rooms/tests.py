from datetime import date, timedelta

import httpx
from django.test import SimpleTestCase

from core.hotel_api import AvailabilityFetchError, HotelServiceClient, HotelServiceError
from .cache import OccupancyCache
from .data_models import ActiveBooking, DayOccupancy, Room
from .services import AvailabilityStore, is_date_selectable, month_days
from .slots import generate_slots, hour_label, hour_value, parse_hour

BASE_URL = 'http://hotel.test/api/v1/hotel'


def make_client(handler):
    return HotelServiceClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


def booked_slots_handler(booked_by_date, failing_dates=()):
    """
    Фейковый сервис: занятые часы по датам, для failing_dates - ошибка сети
    """
    def handler(request):
        day = request.url.params['date']
        if day in failing_dates:
            raise httpx.ConnectError('connection refused', request=request)
        return httpx.Response(200, json={'bookedHours': sorted(booked_by_date.get(day, []))})
    return handler


class TimeSlotTestCase(SimpleTestCase):

    def test_generate_slots_grid(self):
        """Сетка из 24 слотов от 00:00 до 23:00"""
        slots = generate_slots()

        self.assertEqual(len(slots), 24)
        self.assertEqual([s.hour for s in slots], list(range(24)))
        self.assertEqual(slots[0].value, '00:00')
        self.assertEqual(slots[23].value, '23:00')

    def test_generate_slots_is_deterministic(self):
        self.assertEqual(generate_slots(), generate_slots())

    def test_hour_labels(self):
        """12-часовой формат"""
        self.assertEqual(hour_label(0), '12:00 AM')
        self.assertEqual(hour_label(9), '9:00 AM')
        self.assertEqual(hour_label(12), '12:00 PM')
        self.assertEqual(hour_label(23), '11:00 PM')
        self.assertEqual(hour_value(7), '07:00')

    def test_parse_hour(self):
        self.assertEqual(parse_hour(14), 14)
        self.assertEqual(parse_hour('14:00'), 14)
        self.assertEqual(parse_hour('02:00 PM'), 14)
        self.assertEqual(parse_hour('12:00 am'), 0)
        self.assertEqual(parse_hour('12:00 PM'), 12)

    def test_parse_hour_rejects_invalid(self):
        for value in (24, -1, '24:00', '10:30', 'noon', None, True, '13:00 PM'):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_hour(value)


class DayOccupancyTestCase(SimpleTestCase):

    def test_fully_booked_day(self):
        day = DayOccupancy(room_id='r1', date='2030-01-10', booked_hours=frozenset(range(24)))

        self.assertTrue(day.is_fully_booked)
        self.assertTrue(day.has_bookings)

    def test_empty_day(self):
        day = DayOccupancy(room_id='r1', date='2030-01-10')

        self.assertFalse(day.has_bookings)
        self.assertFalse(day.is_fully_booked)

    def test_hour_availability_matches_booked_hours(self):
        """Час занят тогда и только тогда, когда он в booked_hours"""
        booked = frozenset({0, 5, 12, 13, 23})
        day = DayOccupancy(room_id='r1', date='2030-01-10', booked_hours=booked)

        for hour in range(24):
            with self.subTest(hour=hour):
                self.assertEqual(day.is_hour_available(hour), hour not in booked)

    def test_partial_day_is_selectable(self):
        tomorrow = date.today() + timedelta(days=1)
        day = DayOccupancy(room_id='r1', date=tomorrow.isoformat(), booked_hours=frozenset({10, 11}))

        self.assertTrue(day.has_bookings)
        self.assertTrue(is_date_selectable(day, today=date.today()))

    def test_past_or_full_day_not_selectable(self):
        today = date(2030, 5, 15)
        past = DayOccupancy(room_id='r1', date='2030-05-14')
        full = DayOccupancy(room_id='r1', date='2030-05-16', booked_hours=frozenset(range(24)))

        self.assertFalse(is_date_selectable(past, today=today))
        self.assertFalse(is_date_selectable(full, today=today))
        self.assertTrue(is_date_selectable(DayOccupancy(room_id='r1', date='2030-05-15'), today=today))


class RoomModelTestCase(SimpleTestCase):

    def test_room_from_api(self):
        room = Room.from_api({
            '_id': 'abc',
            'price': 8000,
            'isAvailable': True,
            'branchId': {'_id': 'b1', 'name': 'MG Road'},
            'floor': 'First Floor',
            'roomNumber': 101,
            'amenities': ['ac', 'wifi'],
        })

        self.assertEqual(room.id, 'abc')
        self.assertEqual(str(room.rate), '8000')
        self.assertEqual(room.branch_id, 'b1')
        self.assertEqual(room.display_name, 'First Floor - Room 101')

    def test_room_without_number_uses_floor(self):
        room = Room.from_api({'_id': 'abc', 'price': '4500.50', 'floor': 'Ground', 'branchId': 'b2'})

        self.assertEqual(room.display_name, 'Ground')
        self.assertEqual(room.branch_id, 'b2')

    def test_room_invalid_price(self):
        with self.assertRaises(ValueError):
            Room.from_api({'_id': 'abc', 'price': 'free'})

    def test_room_amenities_map(self):
        """Удобства словарем: берутся только отмеченные"""
        room = Room.from_api({
            '_id': 'abc',
            'price': 5000,
            'amenities': {'ac': True, 'tv': False, 'wifi': True, 'minibar': None},
        })

        self.assertEqual(room.amenities, ['ac', 'wifi'])

    def test_room_not_an_object(self):
        with self.assertRaises(ValueError):
            Room.from_api(['abc'])


class ActiveBookingTestCase(SimpleTestCase):

    def setUp(self):
        self.booking = ActiveBooking.from_api({
            'userId': {'_id': 'u-1'},
            'checkInDate': '2030-05-10',
            'checkInTime': '14:00',
            'checkOutDate': '2030-05-12',
            'checkOutTime': '11:00',
        }, 'r1')

    def test_owner_sees_details(self):
        status = self.booking.status_for('u-1')

        self.assertTrue(status['is_own'])
        self.assertEqual(status['check_in_date'], '2030-05-10')
        self.assertEqual(status['check_in_time'], '14:00')
        self.assertEqual(status['check_out_time'], '11:00')

    def test_other_user_sees_only_release_date(self):
        """Чужая бронь: без часов заезда и выезда"""
        for viewer in ('u-2', None, ''):
            with self.subTest(viewer=viewer):
                status = self.booking.status_for(viewer)

                self.assertFalse(status['is_own'])
                self.assertEqual(status['title'], 'This room is currently booked')
                self.assertEqual(status['available_from'], '2030-05-12')
                self.assertNotIn('check_in_time', status)


class OccupancyCacheTestCase(SimpleTestCase):

    def test_switch_view_drops_previous_month(self):
        cache = OccupancyCache()
        key = cache.switch_view('r1', 2030, 1)
        cache.store(key, {'2030-01-01': DayOccupancy(room_id='r1', date='2030-01-01')})

        self.assertIsNotNone(cache.get_month('r1', 2030, 1))

        cache.switch_view('r1', 2030, 2)
        self.assertIsNone(cache.get_month('r1', 2030, 1))

    def test_stale_result_is_discarded(self):
        """Ответ для месяца, с которого ушли, не кешируется"""
        cache = OccupancyCache()
        old_key = cache.switch_view('r1', 2030, 1)
        cache.switch_view('r2', 2030, 1)

        stored = cache.store(old_key, {'2030-01-01': DayOccupancy(room_id='r1', date='2030-01-01')})

        self.assertFalse(stored)
        self.assertIsNone(cache.get_month('r2', 2030, 1))


class HotelServiceClientTestCase(SimpleTestCase):

    async def test_booked_hours_parsed(self):
        client = make_client(booked_slots_handler({'2030-03-01': [9, 10, 11]}))

        hours = await client.booked_hours('r1', date(2030, 3, 1))

        self.assertEqual(hours, frozenset({9, 10, 11}))

    async def test_booked_hours_accepts_hour_strings(self):
        client = make_client(lambda request: httpx.Response(200, json={'bookedHours': ['09:00', '1:00 PM']}))

        hours = await client.booked_hours('r1', '2030-03-01')

        self.assertEqual(hours, frozenset({9, 13}))

    async def test_malformed_payload_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={'hours': [1]}))

        with self.assertRaises(AvailabilityFetchError):
            await client.booked_hours('r1', '2030-03-01')

    async def test_out_of_range_hour_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={'bookedHours': [25]}))

        with self.assertRaises(AvailabilityFetchError):
            await client.booked_hours('r1', '2030-03-01')

    async def test_non_json_listing_raises_service_error(self):
        client = make_client(lambda request: httpx.Response(200, text='<html>gateway</html>'))

        with self.assertRaises(HotelServiceError):
            await client.list_rooms()

    async def test_active_booking_missing(self):
        client = make_client(lambda request: httpx.Response(404, json={'message': 'no active booking'}))

        self.assertIsNone(await client.active_booking('r1'))

    async def test_active_booking_null_body(self):
        client = make_client(lambda request: httpx.Response(
            200, content=b'null', headers={'Content-Type': 'application/json'}
        ))

        self.assertIsNone(await client.active_booking('r1'))


class AvailabilityStoreTestCase(SimpleTestCase):

    async def test_fetch_booked_hours(self):
        store = AvailabilityStore(api=make_client(booked_slots_handler({'2030-03-01': [14, 15]})))

        hours = await store.fetch_booked_hours('r1', '2030-03-01')

        self.assertEqual(hours, frozenset({14, 15}))

    async def test_fetch_booked_hours_fails_open_on_server_error(self):
        """Ошибка сервиса -> пустое множество, а не исключение"""
        store = AvailabilityStore(api=make_client(lambda request: httpx.Response(500, json={'message': 'down'})))

        with self.assertLogs('rooms.services', level='WARNING'):
            hours = await store.fetch_booked_hours('r1', '2030-03-01')

        self.assertEqual(hours, frozenset())

    async def test_fetch_booked_hours_fails_open_on_network_error(self):
        store = AvailabilityStore(api=make_client(booked_slots_handler({}, failing_dates={'2030-03-01'})))

        with self.assertLogs('rooms.services', level='WARNING'):
            hours = await store.fetch_booked_hours('r1', '2030-03-01')

        self.assertEqual(hours, frozenset())

    async def test_fetch_booked_hours_fails_open_on_malformed_response(self):
        store = AvailabilityStore(api=make_client(lambda request: httpx.Response(200, text='<html>')))

        with self.assertLogs('rooms.services', level='WARNING'):
            hours = await store.fetch_booked_hours('r1', '2030-03-01')

        self.assertEqual(hours, frozenset())

    async def test_month_occupancy(self):
        booked = {
            '2030-09-05': [10, 11],
            '2030-09-20': list(range(24)),
        }
        store = AvailabilityStore(api=make_client(booked_slots_handler(booked)))

        occupancy = await store.fetch_month_occupancy('r1', 2030, 9)

        self.assertEqual(len(occupancy), 30)
        self.assertEqual(list(occupancy), [d.isoformat() for d in month_days(2030, 9)])
        self.assertTrue(occupancy['2030-09-05'].has_bookings)
        self.assertFalse(occupancy['2030-09-05'].is_fully_booked)
        self.assertTrue(occupancy['2030-09-20'].is_fully_booked)
        self.assertFalse(occupancy['2030-09-01'].has_bookings)
        self.assertEqual(store.cache.get_month('r1', 2030, 9), occupancy)

    async def test_month_occupancy_with_failed_days(self):
        """3 из 30 дней упали - месяц все равно из 30 дней, упавшие пустые"""
        failing = {'2030-09-03', '2030-09-14', '2030-09-29'}
        booked = {'2030-09-14': [1, 2], '2030-09-15': [8]}
        store = AvailabilityStore(api=make_client(booked_slots_handler(booked, failing_dates=failing)))

        with self.assertLogs('rooms.services', level='WARNING'):
            occupancy = await store.fetch_month_occupancy('r1', 2030, 9)

        self.assertEqual(len(occupancy), 30)
        for iso_date in failing:
            self.assertEqual(occupancy[iso_date].booked_hours, frozenset())
            self.assertTrue(occupancy[iso_date].fetch_failed)
        self.assertEqual(occupancy['2030-09-15'].booked_hours, frozenset({8}))
        self.assertFalse(occupancy['2030-09-15'].fetch_failed)

    async def test_month_occupancy_february(self):
        store = AvailabilityStore(api=make_client(booked_slots_handler({})))

        occupancy = await store.fetch_month_occupancy('r1', 2028, 2)

        self.assertEqual(len(occupancy), 29)

    async def test_is_hour_available_refetches(self):
        calls = []

        def handler(request):
            calls.append(request.url.params['date'])
            return httpx.Response(200, json={'bookedHours': [12]})

        store = AvailabilityStore(api=make_client(handler))

        self.assertFalse(await store.is_hour_available('r1', '2030-03-01', 12))
        self.assertTrue(await store.is_hour_available('r1', '2030-03-01', 13))
        self.assertEqual(len(calls), 2)

    async def test_month_occupancy_with_unexpected_error(self):
        """Непредвиденная ошибка одного дня не отменяет весь месяц"""
        def handler(request):
            if request.url.params['date'] == '2030-09-10':
                raise RuntimeError('broken transport')
            return httpx.Response(200, json={'bookedHours': [9]})

        store = AvailabilityStore(api=make_client(handler))

        with self.assertLogs('rooms.services', level='ERROR'):
            occupancy = await store.fetch_month_occupancy('r1', 2030, 9)

        self.assertEqual(len(occupancy), 30)
        self.assertTrue(occupancy['2030-09-10'].fetch_failed)
        self.assertEqual(occupancy['2030-09-10'].booked_hours, frozenset())
        self.assertEqual(occupancy['2030-09-11'].booked_hours, frozenset({9}))

    async def test_month_occupancy_served_from_cache(self):
        calls = []

        def handler(request):
            calls.append(request.url.params['date'])
            return httpx.Response(200, json={'bookedHours': []})

        store = AvailabilityStore(api=make_client(handler))

        first = await store.fetch_month_occupancy('r1', 2030, 9)
        second = await store.fetch_month_occupancy('r1', 2030, 9)

        self.assertEqual(first, second)
        self.assertEqual(len(calls), 30)

        await store.fetch_month_occupancy('r1', 2030, 9, refresh=True)
        self.assertEqual(len(calls), 60)

    async def test_month_with_failed_days_is_fetched_again(self):
        calls = []

        def handler(request):
            calls.append(request.url.params['date'])
            if len(calls) == 1:
                raise httpx.ConnectError('connection refused', request=request)
            return httpx.Response(200, json={'bookedHours': []})

        store = AvailabilityStore(api=make_client(handler))

        with self.assertLogs('rooms.services', level='WARNING'):
            await store.fetch_month_occupancy('r1', 2030, 9)
        occupancy = await store.fetch_month_occupancy('r1', 2030, 9)

        self.assertEqual(len(calls), 60)
        self.assertFalse(any(day.fetch_failed for day in occupancy.values()))

    async def test_switching_month_refetches(self):
        store = AvailabilityStore(api=make_client(booked_slots_handler({})))

        await store.fetch_month_occupancy('r1', 2030, 9)
        await store.fetch_month_occupancy('r1', 2030, 10)

        self.assertIsNone(store.cache.get_month('r1', 2030, 9))
        self.assertEqual(len(store.cache.get_month('r1', 2030, 10)), 31)

    async def test_fetch_active_booking(self):
        store = AvailabilityStore(api=make_client(lambda request: httpx.Response(200, json={
            'userId': 'u-1', 'checkInDate': '2030-05-10', 'checkOutDate': '2030-05-12',
        })))

        booking = await store.fetch_active_booking('r1')

        self.assertEqual(booking.room_id, 'r1')
        self.assertEqual(booking.user_id, 'u-1')
        self.assertTrue(booking.is_owned_by('u-1'))

    async def test_fetch_active_booking_fails_open(self):
        store = AvailabilityStore(api=make_client(lambda request: httpx.Response(200, text='<html>')))

        with self.assertLogs('rooms.services', level='WARNING'):
            booking = await store.fetch_active_booking('r1')

        self.assertIsNone(booking)
