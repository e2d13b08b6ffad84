from django.contrib import admin
from .models import StudentAssignment


@admin.register(StudentAssignment)
class StudentAssignmentAdmin(admin.ModelAdmin):
    list_display = ['get_student_number', 'election', 'laboratory', 'assigned_by', 'assigned_at']
    list_filter = ['election', 'laboratory']
    search_fields = ['student__student_number', 'election__title', 'laboratory__name']
    date_hierarchy = 'assigned_at'
    raw_id_fields = ['student', 'assigned_by']
    readonly_fields = ['assigned_at']

    def get_student_number(self, obj):
        return obj.student.student_number
    get_student_number.short_description = 'Student'
