from django.urls import path
from .views import list_create_view
from .views import retrieve_update_destroy_view
from .views import opus_list_create_view

urlpatterns=[
    # GET and POST (List items and Capture new item)
    path('',list_create_view,name="item-list-create"),

    path('opuses/',opus_list_create_view,name="opus-list-create"),

    # GET, PUT, PATCH, DELETE (Detail and board moves)
    path('<int:pk>/',retrieve_update_destroy_view,name="item-detail"),
]
