import os
from dotenv import load_dotenv
load_dotenv()  # same .env as settings.py
from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'orgstrategy.settings')

app = Celery('orgstrategy')

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Worker modules are named celery_tasks.py, not tasks.py.
app.autodiscover_tasks(
    ['items', 'decisions.reward_engine'],
    related_name='celery_tasks',
)
