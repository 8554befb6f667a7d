import logging

from asgiref.sync import async_to_sync
from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from core.hotel_api import SERVICE_ERRORS, get_client
from .serializers import ProfilePrefillSerializer

logger = logging.getLogger(__name__)


# Профиль
class MeView(APIView):
    """
    GET /auth/me - профиль для предзаполнения формы брони.
    Данные сервиса отеля важнее локальных; при его недоступности берем локальные
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        profile = {
            'user_id': user.hotel_user_id,
            'name': user.get_full_name() or user.username,
            'phone': user.phone,
            'email': user.email,
        }

        if user.remote_user_id:
            try:
                data = async_to_sync(get_client().get_user)(user.remote_user_id)
            except SERVICE_ERRORS as e:
                logger.warning(f"Профиль {user.remote_user_id} недоступен в сервисе отеля: {e!r}")
            else:
                if isinstance(data, dict):
                    profile['name'] = data.get('name') or profile['name']
                    profile['phone'] = data.get('mobile') or profile['phone']
                    profile['email'] = data.get('email') or profile['email']

        return Response(ProfilePrefillSerializer(profile).data)
