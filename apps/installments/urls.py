from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'plans', views.InstallmentPlanViewSet, basename='installmentplan')

urlpatterns = [
    path('preview/', views.preview, name='installment_preview'),
    path('refresh-statuses/', views.refresh_repayment_statuses, name='refresh_repayment_statuses'),
    path('', include(router.urls)),
]
