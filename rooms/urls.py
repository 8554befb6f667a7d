from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import BranchViewSet, RoomViewSet, TimeSlotListView

router = SimpleRouter()
router.register('rooms', RoomViewSet, basename='room')
router.register('branches', BranchViewSet, basename='branch')

urlpatterns = [
    path('slots/', TimeSlotListView.as_view(), name='slot-list'),
] + router.urls
