from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .pricing import GSTOption
from .validators import StayDatesValidator


class PriceBreakdownSerializer(serializers.Serializer):
    nights = serializers.IntegerField()
    base_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    gst_option = serializers.CharField()
    gst_percent = serializers.DecimalField(max_digits=5, decimal_places=2)
    cgst = serializers.DecimalField(max_digits=14, decimal_places=2)
    sgst = serializers.DecimalField(max_digits=14, decimal_places=2)
    igst = serializers.DecimalField(max_digits=14, decimal_places=2)
    tax_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2)


class QuoteSerializer(serializers.Serializer):
    """Параметры расчета цены до заполнения формы гостя"""
    room_id = serializers.CharField(max_length=64)
    check_in_date = serializers.DateField(input_formats=['%Y-%m-%d'])
    check_out_date = serializers.DateField(input_formats=['%Y-%m-%d'])
    gst_option = serializers.ChoiceField(choices=GSTOption.choices, default=GSTOption.WITHOUT_GST)

    def validate(self, attrs):
        try:
            StayDatesValidator(today=self.context.get('today'))(attrs['check_in_date'], attrs['check_out_date'])
        except DjangoValidationError as e:
            raise serializers.ValidationError({e.params['field']: [str(e.message % e.params)]})
        return attrs


class BookingSerializer(serializers.Serializer):
    """Бронь, принятая сервисом"""
    id = serializers.CharField()
    status = serializers.CharField()
    room_id = serializers.CharField()
    check_in_date = serializers.CharField()
    check_out_date = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2, allow_null=True)
