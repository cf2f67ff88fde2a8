from django.urls import path
from .views import list_view
from .views import detail_view
from .views import feedback_view
from .views import outcome_view
from .views import reward_view

urlpatterns=[
    # GET (List the user's decisions)
    path('',list_view,name="decision-list"),

    path('<uuid:pk>/',detail_view,name="decision-detail"),

    # POST (Annotate and rescore)
    path('<uuid:pk>/feedback/',feedback_view,name="decision-feedback"),
    path('<uuid:pk>/outcome/',outcome_view,name="decision-outcome"),
    path('<uuid:pk>/reward/',reward_view,name="decision-reward"),
]
