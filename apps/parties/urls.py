from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

router = SimpleRouter()
router.register(r'', views.PartyViewSet, basename='party')

urlpatterns = [
    path('search/', views.party_search, name='party_search'),
    path('', include(router.urls)),
]
