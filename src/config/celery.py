"""
Celery application for the delivery platform.

DJANGO_SETTINGS_MODULE is set before the app is created so Celery reads the
Django settings (``CELERY_`` prefix).  Order timers (auto-cancel countdown,
tracking ticks, overdue sweep) live in ``modules.orders.tasks``.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("delivery")

app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
