"""
Расчет стоимости проживания с GST.

Ставка зависит от цены за ночь: от 7500 и выше 18% (9% CGST + 9% SGST
или 18% IGST), ниже порога 12% (6% + 6% или 12% IGST).
Все суммы считаются в Decimal с округлением до пайсы.
"""
import math
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from django.db import models

from .data_models import PriceBreakdown

GST_THRESHOLD = Decimal('7500')

# Полная ставка (%) по слэбам
HIGH_SLAB_PERCENT = Decimal('18')
LOW_SLAB_PERCENT = Decimal('12')

CENT = Decimal('0.01')
SECONDS_PER_DAY = 24 * 60 * 60


class GSTOption(models.TextChoices):
    WITHOUT_GST = 'withoutGST', 'Without GST'
    WITH_GST = 'withGST', 'CGST + SGST (intra-state)'
    WITH_IGST = 'withIGST', 'IGST (inter-state)'


def to_money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def nights(check_in, check_out):
    """
    Количество ночей: ceil разницы в днях, не меньше 0.
    check_out <= check_in дает 0 (ошибкой это считает валидатор)
    """
    if isinstance(check_in, datetime) or isinstance(check_out, datetime):
        check_in = _as_datetime(check_in)
        check_out = _as_datetime(check_out)
        days = math.ceil((check_out - check_in).total_seconds() / SECONDS_PER_DAY)
    else:
        days = (check_out - check_in).days
    return max(days, 0)


def slab_percent(rate):
    """Полная ставка GST для цены за ночь"""
    return HIGH_SLAB_PERCENT if Decimal(rate) >= GST_THRESHOLD else LOW_SLAB_PERCENT


def compute_price(rate, nights, gst_option=GSTOption.WITHOUT_GST):
    """
    Единственное место расчета цены брони.

    :param rate: цена за ночь
    :param nights: количество ночей
    :param gst_option: GSTOption
    :return: PriceBreakdown
    """
    rate = Decimal(str(rate)) if isinstance(rate, float) else Decimal(rate)
    if rate < 0:
        raise ValueError(f"Цена за ночь не может быть отрицательной: {rate}")
    if isinstance(nights, bool) or not isinstance(nights, int) or nights < 0:
        raise ValueError(f"Некорректное количество ночей: {nights!r}")
    gst_option = GSTOption(gst_option)

    base_amount = to_money(rate * nights)
    full_percent = slab_percent(rate)
    half_percent = full_percent / 2

    cgst = sgst = igst = to_money(0)
    gst_percent = Decimal('0')

    if gst_option == GSTOption.WITH_GST:
        cgst = sgst = to_money(base_amount * half_percent / 100)
        gst_percent = half_percent
    elif gst_option == GSTOption.WITH_IGST:
        # IGST = две половины, чтобы итог совпадал с CGST + SGST до пайсы
        igst = to_money(base_amount * half_percent / 100) * 2
        gst_percent = full_percent

    tax_amount = cgst + sgst + igst

    return PriceBreakdown(
        nights=nights,
        base_amount=base_amount,
        gst_option=gst_option,
        gst_percent=gst_percent,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        tax_amount=tax_amount,
        total_amount=base_amount + tax_amount,
    )


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    raise TypeError(f"Ожидалась дата, получено {type(value).__name__}")
