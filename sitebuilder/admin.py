from django.contrib import admin

from .models import BuildRun, ChangeEvent, WebhookDelivery


class ChangeEventInline(admin.TabularInline):
    model = ChangeEvent
    extra = 0
    fields = ('change_type', 'title', 'collection', 'external_id', 'observed_at')
    readonly_fields = fields


@admin.register(BuildRun)
class BuildRunAdmin(admin.ModelAdmin):
    list_display = ('started_at', 'trigger', 'status', 'change_count', 'file_count', 'deploy_url')
    list_filter = ('status', 'trigger')
    search_fields = ('site_id', 'commit', 'error')
    inlines = [ChangeEventInline]


@admin.register(ChangeEvent)
class ChangeEventAdmin(admin.ModelAdmin):
    list_display = ('change_type', 'title', 'collection', 'external_id', 'observed_at', 'build_run')
    list_filter = ('change_type', 'collection')
    search_fields = ('title', 'external_id')


@admin.register(WebhookDelivery)
class WebhookDeliveryAdmin(admin.ModelAdmin):
    list_display = ('received_at', 'event', 'action', 'signature_valid', 'handled', 'status_written')
    list_filter = ('event', 'signature_valid', 'handled')
    search_fields = ('delivery_id',)
