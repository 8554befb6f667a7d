from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User


@admin.register(User)
class HotelUserAdmin(UserAdmin):
    list_display = ['username', 'email', 'phone', 'remote_user_id', 'role', 'is_staff']
    list_filter = ['role', 'is_staff', 'is_active']
    search_fields = ['username', 'email', 'phone', 'remote_user_id']
    fieldsets = UserAdmin.fieldsets + (
        ('Hotel', {'fields': ('role', 'phone', 'remote_user_id')}),
    )
