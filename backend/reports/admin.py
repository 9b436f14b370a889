from django.contrib import admin

from .models import BlotterCounter, OfficerNote, Report, ReportComment, ReportEvidence


class OfficerNoteInline(admin.TabularInline):
    model = OfficerNote
    extra = 0
    readonly_fields = ("author", "body", "created_at")


class ReportCommentInline(admin.TabularInline):
    model = ReportComment
    extra = 0
    readonly_fields = ("author", "body", "created_at")


class ReportEvidenceInline(admin.TabularInline):
    model = ReportEvidence
    extra = 0
    readonly_fields = ("uploaded_by", "media_url", "media_kind", "created_at")


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = ("id", "blotter_number", "category", "status", "priority",
                    "assigned_officer", "created_at")
    list_filter = ("status", "priority", "triage_level", "jurisdiction_id")
    search_fields = ("blotter_number", "category", "subcategory", "description")
    # Workflow fields change only through the state machine.
    readonly_fields = ("status", "blotter_number", "assigned_officer", "assignment_status",
                       "handled_by", "closure_approved", "closure_reviewed_at",
                       "closure_reviewer", "created_at", "updated_at")
    inlines = [OfficerNoteInline, ReportCommentInline, ReportEvidenceInline]


@admin.register(BlotterCounter)
class BlotterCounterAdmin(admin.ModelAdmin):
    list_display = ("period_key", "last_number", "updated_at")
    readonly_fields = ("period_key", "year", "month", "last_number", "updated_at")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
