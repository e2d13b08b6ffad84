from django.contrib import admin
from .models import Student, Admin


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['student_number', 'get_user_name', 'course_name', 'department', 'year_level']
    list_filter = ['department', 'course_name', 'year_level']
    search_fields = ['student_number', 'user__username', 'user__first_name', 'user__last_name']
    raw_id_fields = ['user']

    def get_user_name(self, obj):
        return obj.full_name
    get_user_name.short_description = 'Name'


@admin.register(Admin)
class AdminProfileAdmin(admin.ModelAdmin):
    list_display = ['admin_id', 'get_user_name', 'department', 'created_at']
    search_fields = ['admin_id', 'user__username', 'user__email']
    raw_id_fields = ['user']

    def get_user_name(self, obj):
        return obj.user.get_username()
    get_user_name.short_description = 'Username'
