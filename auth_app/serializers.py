from rest_framework import serializers


class ProfilePrefillSerializer(serializers.Serializer):
    """Данные гостя для предзаполнения формы брони"""
    user_id = serializers.CharField()
    name = serializers.CharField(allow_blank=True)
    phone = serializers.CharField(allow_blank=True)
    email = serializers.CharField(allow_blank=True)
