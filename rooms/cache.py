from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)


class OccupancyCache:
    """
    Кеш занятости на текущий просматриваемый месяц.
    Живет в памяти экземпляра AvailabilityStore и хранит только один
    (комната, год, месяц); смена месяца или комнаты сбрасывает данные
    """

    def __init__(self):
        self._key = None
        self._days = {}

    @staticmethod
    def make_key(room_id, year, month):
        return (str(room_id), int(year), int(month))

    def switch_view(self, room_id, year, month):
        """
        Переключает просматриваемый месяц. Возвращает новый ключ
        """
        key = self.make_key(room_id, year, month)
        if key != self._key:
            logger.debug(f"Смена месяца в календаре: {self._key} -> {key}")
            self._key = key
            self._days = {}
        return key

    def is_current(self, key):
        return key == self._key

    def store(self, key, occupancy):
        """
        Сохраняет занятость месяца, если вид не сменился за время запроса
        :return: True если данные сохранены
        """
        if not self.is_current(key):
            logger.debug(f"Результат для {key} отброшен: календарь уже на {self._key}")
            return False
        self._days = dict(occupancy)
        return True

    def get_month(self, room_id, year, month):
        key = self.make_key(room_id, year, month)
        if key != self._key or not self._days:
            return None
        return dict(self._days)


class ListingCache:
    """
    Кеш списков комнат и филиалов (django cache, в проде redis)
    """

    # Префикс ключей кеша списков
    KEY_PREFIX = 'hotel_listing'

    # TTL кеша в секундах
    DEFAULT_TTL = 60

    @classmethod
    def get_key(cls, kind, scope=None):
        return f"{cls.KEY_PREFIX}:{kind}:{scope or 'all'}"

    @classmethod
    def get(cls, kind, scope=None):
        key = cls.get_key(kind, scope)
        try:
            data = cache.get(key)
            if data is not None:
                logger.debug(f"Кеш списка получен: {key}")
            return data
        except Exception as e:
            logger.error(f"Ошибка получения кеша {key}: {str(e)}")
            return None

    @classmethod
    def set(cls, kind, data, scope=None, ttl=None):
        if ttl is None:
            ttl = cls.DEFAULT_TTL

        key = cls.get_key(kind, scope)
        try:
            cache.set(key, data, timeout=ttl)
            logger.debug(f"Кеш списка сохранен: {key}, TTL: {ttl}с")
        except Exception as e:
            logger.error(f"Ошибка сохранения кеша {key}: {str(e)}")

    @classmethod
    def invalidate(cls, kind, scope=None):
        key = cls.get_key(kind, scope)
        try:
            cache.delete(key)
        except Exception as e:
            logger.error(f"Ошибка инвалидации кеша {key}: {str(e)}")
