from django.contrib import admin
from .models import Laboratory, IPAssignmentRule


class IPAssignmentRuleInline(admin.TabularInline):
    model = IPAssignmentRule
    extra = 0
    fields = ['ip_type', 'ip_address', 'ip_range_start', 'ip_range_end', 'subnet_mask', 'is_active']
    ordering = ['id']


@admin.register(Laboratory)
class LaboratoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'capacity', 'get_rule_count', 'created_at']
    search_fields = ['name', 'description']
    readonly_fields = ['laboratory_id', 'created_at', 'updated_at']
    inlines = [IPAssignmentRuleInline]

    def get_queryset(self, request):
        return Laboratory._default_manager.list_laboratories()

    def get_rule_count(self, obj):
        return obj.ip_count
    get_rule_count.short_description = 'IP rules'

    def has_delete_permission(self, request, obj=None):
        # Laboratories used by an upcoming or ongoing election cannot be removed
        if obj is not None:
            from voting.models import StudentAssignment
            if StudentAssignment._default_manager.has_live_assignments(obj):
                return False
        return super().has_delete_permission(request, obj)


@admin.register(IPAssignmentRule)
class IPAssignmentRuleAdmin(admin.ModelAdmin):
    list_display = ['describe', 'ip_type', 'laboratory', 'is_active', 'created_at']
    list_filter = ['ip_type', 'is_active', 'laboratory']
    search_fields = ['ip_address', 'ip_range_start', 'ip_range_end', 'subnet_mask', 'laboratory__name']
    readonly_fields = ['rule_id', 'created_at']
    actions = ['activate_rules', 'deactivate_rules']

    def activate_rules(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f'{updated} rule(s) activated.', level='SUCCESS')
    activate_rules.short_description = "Activate selected rules"

    def deactivate_rules(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f'{updated} rule(s) deactivated.', level='SUCCESS')
    deactivate_rules.short_description = "Deactivate selected rules"
