from django.urls import path
from . import views

app_name = 'voting'

urlpatterns = [
    # Student laboratory assignments
    path('assignments/', views.assign_student, name='assign_student'),
    path('assignments/<uuid:election_id>/<uuid:laboratory_id>/', views.laboratory_students, name='laboratory_students'),

    # Vote location authorization
    path('authorize/', views.authorize_vote, name='authorize_vote'),
    path('elections/<uuid:election_id>/location-check/', views.LocationCheckView.as_view(), name='location_check'),
]
