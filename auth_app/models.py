from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_CHOICES = (
        ('user', 'user'),
        ('admin', 'admin')
    )
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='user')
    phone = models.CharField(max_length=15, blank=True, default='')
    # id пользователя в сервисе отеля; уходит в заявку как userId
    remote_user_id = models.CharField(max_length=64, blank=True, default='', db_index=True)

    @property
    def hotel_user_id(self):
        """id в сервисе отеля, для локальных пользователей - pk"""
        return self.remote_user_id or str(self.pk)

    def __str__(self):
        return self.username
