import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'finance_backend.settings')

app = Celery('finance_backend')

# All CELERY_* settings in settings.py configure the app
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
