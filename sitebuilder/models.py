"""Database models for the sitebuilder app.

Every build (triggered by polling, the CLI or a webhook) is recorded as a
``BuildRun`` together with the ``ChangeEvent`` rows that caused it. GitHub
webhook deliveries are stored as received so they can be audited.
"""

from __future__ import annotations

from django.db import models


class BuildRun(models.Model):
    """A single build of the site and its outcome."""

    class Trigger(models.TextChoices):
        POLL = 'poll', 'Change polling'
        CLI = 'cli', 'Command line'
        WEBHOOK = 'webhook', 'GitHub webhook'

    class Status(models.TextChoices):
        RUNNING = 'running', 'Running'
        PUBLISHED = 'published', 'Published'
        FAILED = 'failed', 'Build failed'

    trigger = models.CharField(max_length=16, choices=Trigger.choices, default=Trigger.CLI)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.RUNNING, db_index=True)
    site_id = models.CharField(max_length=64, blank=True)
    file_count = models.PositiveIntegerField(default=0)
    change_count = models.PositiveIntegerField(default=0)
    deploy_url = models.URLField(blank=True)
    commit = models.CharField(max_length=64, blank=True)
    error = models.TextField(blank=True)
    broken_links = models.JSONField(default=list, blank=True)
    pages = models.JSONField(default=list, blank=True)
    started_at = models.DateTimeField(auto_now_add=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-started_at', '-id']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.get_trigger_display()} · {self.get_status_display()} · {self.started_at:%Y-%m-%d %H:%M}"


class ChangeEvent(models.Model):
    """A created/updated/deleted record observed by the change detector."""

    class ChangeType(models.TextChoices):
        CREATED = 'created', 'Created'
        UPDATED = 'updated', 'Updated'
        DELETED = 'deleted', 'Deleted'

    build_run = models.ForeignKey(
        BuildRun,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='changes',
    )
    change_type = models.CharField(max_length=16, choices=ChangeType.choices)
    external_id = models.CharField(max_length=64, db_index=True)
    title = models.CharField(max_length=300, blank=True)
    collection = models.CharField(max_length=64, blank=True)
    last_edited_at = models.CharField(max_length=40, blank=True)
    observed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['id']

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.change_type}: {self.title or self.external_id}"


class WebhookDelivery(models.Model):
    """A GitHub webhook delivery as received by the webhook endpoint."""

    delivery_id = models.CharField(max_length=64, blank=True, db_index=True)
    event = models.CharField(max_length=64)
    action = models.CharField(max_length=64, blank=True)
    signature_valid = models.BooleanField(default=False)
    handled = models.BooleanField(default=False)
    status_written = models.CharField(max_length=32, blank=True)
    payload = models.JSONField(default=dict, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-received_at', '-id']
        verbose_name_plural = 'webhook deliveries'

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return f"{self.event} · {self.delivery_id or 'no id'}"
