from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'laboratories'

router = DefaultRouter()
router.register(r'laboratories', views.LaboratoryViewSet)

urlpatterns = [
    # API endpoints
    path('', include(router.urls)),

    # Rule management
    path('ip-addresses/<uuid:rule_id>/', views.ip_address_detail, name='ip_address_detail'),
]
