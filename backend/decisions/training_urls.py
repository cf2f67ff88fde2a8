from django.urls import path
from .views import export_view

urlpatterns=[
    # GET (JSONL download of training-eligible decisions)
    path('export/',export_view,name="training-export"),
]
