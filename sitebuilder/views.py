"""JSON endpoints for the sitebuilder app.

``select_components`` exposes the component selector, ``builds`` lists
recent build runs and ``github_webhook`` receives GitHub deliveries and
writes the resulting status back to the workspace.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Dict

from asgiref.sync import async_to_sync
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .conf import SiteBuilderSettings, get_settings
from .exceptions import ConfigurationError
from .forms import SectionsForm
from .models import BuildRun, WebhookDelivery
from .selector import ComponentSelector, load_config, load_registry
from .services import build_run_payload, selection_payload
from .sync.notion import NotionClient
from .sync.orchestrator import StatusReporter
from .webhooks import DELIVERY_HEADER, EVENT_HEADER, SIGNATURE_HEADER, GitHubWebhookHandler, verify_signature

logger = logging.getLogger(__name__)

MAX_BUILDS = 100


@lru_cache(maxsize=4)
def _selector(registry_path: Any, config_path: Any) -> ComponentSelector:
    return ComponentSelector(load_registry(registry_path), load_config(config_path))


@csrf_exempt
@require_POST
def select_components(request: HttpRequest) -> JsonResponse:
    """Pick a component for every section of a submitted page outline."""

    form = SectionsForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'errors': form.errors.get_json_data()}, status=400)

    conf = get_settings()
    try:
        selector = _selector(conf.registry_path, conf.selector_config_path)
    except ConfigurationError as exc:
        logger.error('Component selector is misconfigured: %s', exc)
        return JsonResponse({'detail': str(exc)}, status=503)

    selections = selector.select_page(
        form.cleaned_data['sections'],
        business_type=form.cleaned_data['business_type'],
    )
    return JsonResponse({
        'business_type': form.cleaned_data['business_type'],
        'selections': [selection_payload(selection) for selection in selections],
    })


@require_GET
def builds(request: HttpRequest) -> JsonResponse:
    """List recent build runs, newest first."""

    try:
        limit = int(request.GET.get('limit', 20))
    except (TypeError, ValueError):
        limit = 20
    limit = max(1, min(limit, MAX_BUILDS))

    runs = BuildRun.objects.prefetch_related('changes')
    status = request.GET.get('status')
    if status:
        runs = runs.filter(status=status)
    return JsonResponse({'builds': [build_run_payload(run) for run in runs[:limit]]})


async def dispatch_event(event: str, payload: Dict[str, Any], conf: SiteBuilderSettings) -> Dict[str, Any]:
    """Run the webhook handler, with a workspace reporter when one is configured."""

    if not conf.has_notion:
        return await GitHubWebhookHandler(None).handle(event, payload)

    async with NotionClient(conf.notion_api_key) as client:
        reporter = StatusReporter(client, conf.site_id, conf.databases.get('build_log'))
        return await GitHubWebhookHandler(reporter).handle(event, payload)


@csrf_exempt
@require_POST
def github_webhook(request: HttpRequest) -> JsonResponse:
    """Verify and handle a GitHub webhook delivery."""

    conf = get_settings()
    event = request.META.get(EVENT_HEADER, '')
    delivery_id = request.META.get(DELIVERY_HEADER, '')

    if not verify_signature(conf.github_webhook_secret, request.body, request.META.get(SIGNATURE_HEADER)):
        logger.warning('Rejected webhook delivery %s: invalid signature', delivery_id or '(no id)')
        return JsonResponse({'error': 'Invalid signature'}, status=401)

    if not event:
        return JsonResponse({'error': 'Missing X-GitHub-Event header'}, status=400)

    try:
        payload = json.loads(request.body or b'{}')
    except ValueError:
        return JsonResponse({'error': 'Body must be JSON'}, status=400)
    if not isinstance(payload, dict):
        return JsonResponse({'error': 'Body must be a JSON object'}, status=400)

    delivery = WebhookDelivery.objects.create(
        delivery_id=delivery_id,
        event=event,
        action=str(payload.get('action') or ''),
        signature_valid=True,
        payload=payload,
    )

    try:
        result = async_to_sync(dispatch_event)(event, payload, conf)
    except ConfigurationError as exc:
        logger.error('Webhook %s could not be processed: %s', event, exc)
        return JsonResponse({'error': str(exc)}, status=503)

    delivery.handled = bool(result.get('handled'))
    delivery.status_written = result.get('status') or ''
    delivery.save(update_fields=['handled', 'status_written'])
    return JsonResponse({'received': True, 'event': event, **result})
