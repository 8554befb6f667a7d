from rest_framework import serializers

from .services import is_date_selectable


class TimeSlotSerializer(serializers.Serializer):
    """Сериализатор часового слота"""
    hour = serializers.IntegerField()
    value = serializers.CharField()
    label = serializers.CharField()


class BranchSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    address = serializers.CharField(allow_blank=True)


class RoomSerializer(serializers.Serializer):
    """Сериализатор комнаты"""
    id = serializers.CharField()
    display_name = serializers.CharField()
    rate = serializers.DecimalField(max_digits=12, decimal_places=2)
    is_available = serializers.BooleanField()
    branch_id = serializers.CharField(allow_null=True)
    floor = serializers.CharField(allow_blank=True)
    room_number = serializers.CharField(allow_blank=True)
    room_type = serializers.CharField(allow_blank=True)
    amenities = serializers.ListField(child=serializers.CharField())


class DayOccupancySerializer(serializers.Serializer):
    """Сериализатор занятости дня для календаря"""
    date = serializers.CharField()
    booked_hours = serializers.SerializerMethodField()
    has_bookings = serializers.BooleanField()
    is_fully_booked = serializers.BooleanField()
    is_selectable = serializers.SerializerMethodField()
    fetch_failed = serializers.BooleanField()

    def get_booked_hours(self, obj):
        return sorted(obj.booked_hours)

    def get_is_selectable(self, obj):
        return is_date_selectable(obj, today=self.context.get('today'))


class SlotAvailabilitySerializer(TimeSlotSerializer):
    is_available = serializers.BooleanField()


class OccupancyQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    month = serializers.IntegerField(min_value=1, max_value=12)


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField(input_formats=['%Y-%m-%d'])
