# biblestudy/fields.py
import datetime as dt

from django.utils import timezone
from rest_framework import serializers


class AwareDateTimeField(serializers.DateTimeField):
    """
    Datetime field that ensures tz-aware UTC datetimes.
    - Accepts ISO strings with/without timezone; if naive → assume UTC.
    - Always outputs ISO in UTC (Z).
    - With fallback_now=True a missing stored value renders as the current time
      instead of null (readers never see an absent timestamp).
    """
    def __init__(self, *args, fallback_now=False, **kwargs):
        self.fallback_now = fallback_now
        super().__init__(*args, **kwargs)

    def to_internal_value(self, value):
        d = super().to_internal_value(value)
        if d is None:
            return None
        if timezone.is_naive(d):
            d = timezone.make_aware(d, dt.timezone.utc)
        return d.astimezone(dt.timezone.utc)

    def get_attribute(self, instance):
        value = super().get_attribute(instance)
        if value is None and self.fallback_now:
            return timezone.now()
        return value

    def to_representation(self, value):
        if value is None:
            return None
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt.timezone.utc)
        return super().to_representation(value.astimezone(dt.timezone.utc))
