from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .cache import invalidate
from .models import Class, Lesson, Main


@receiver(post_save, sender=Main)
@receiver(post_save, sender=Class)
@receiver(post_save, sender=Lesson)
@receiver(post_delete, sender=Main)
@receiver(post_delete, sender=Class)
@receiver(post_delete, sender=Lesson)
def invalidate_curriculum_cache(sender, **kwargs):
    # Bump now for readers inside this transaction, and again on commit so
    # anything cached from pre-commit rows in between is discarded.
    invalidate()
    transaction.on_commit(invalidate)
