from django.urls import path
from . import views

urlpatterns = [
    path('register/', views.register, name='register'),
    path('login/', views.login, name='login'),
    path('token/', views.CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('token/refresh/', views.refresh_token, name='token_refresh'),
    path('token/verify/', views.verify_token, name='token_verify'),
    path('logout/', views.logout, name='logout'),
    path('profile/', views.profile, name='profile'),
    path('profile/update/', views.profile, name='update_profile'),
    path('change-password/', views.change_password, name='change_password'),
]
