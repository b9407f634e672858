"""Helpers shared by the views and management commands.

Build wiring (selector, copy generator, publish step) lives next to the
persistence helpers that record each run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .conf import SiteBuilderSettings
from .generator import BuildResult, GitPublisher, anthropic_generator, build_site, deploy_url, write_manifest
from .generator.copywriter import AIGenerate
from .models import BuildRun, ChangeEvent
from .selector import ComponentSelector, load_config, load_registry
from .selector.types import PageSelection
from .sync.content import SiteData
from .sync.detector import ChangeRecord

logger = logging.getLogger(__name__)


def selector_from_settings(conf: SiteBuilderSettings) -> ComponentSelector:
    return ComponentSelector(load_registry(conf.registry_path), load_config(conf.selector_config_path))


def ai_generator_from_settings(conf: SiteBuilderSettings) -> Optional[AIGenerate]:
    if not conf.anthropic_api_key:
        return None
    return anthropic_generator(conf.anthropic_api_key, conf.ai_model)


def build_and_publish(
    site_data: SiteData,
    conf: SiteBuilderSettings,
    *,
    output_dir: str | Path | None = None,
    publish: bool = True,
    selector: ComponentSelector | None = None,
    ai_generate: Optional[AIGenerate] = None,
) -> BuildResult:
    """Build ``site_data`` into the output directory and optionally push it.

    Publishing needs ``SITEBUILDER_PUBLISH_DIR`` to point at a git checkout;
    without it the build is left on disk.
    """

    result = build_site(
        site_data,
        output_dir or conf.output_dir,
        selector or selector_from_settings(conf),
        ai_generate,
        base_url=deploy_url(conf.github_repo),
    )
    if publish and conf.publish_dir:
        publisher = GitPublisher(conf.publish_dir, branch=conf.github_branch, remote=conf.github_remote)
        outcome = publisher.publish(
            result.output_dir,
            result.files,
            f'Update site: {site_data.site.name or "site"}',
            domain=site_data.site.domain,
        )
        result.commit = outcome.commit
    elif publish:
        logger.info('SITEBUILDER_PUBLISH_DIR is not set; leaving the build in %s', result.output_dir)
    write_manifest(result)
    return result


def change_event_from_record(change: ChangeRecord, build_run: BuildRun | None = None) -> ChangeEvent:
    return ChangeEvent(
        build_run=build_run,
        change_type=change.type,
        external_id=change.external_id,
        title=(change.title or '')[:300],
        collection=change.collection,
        last_edited_at=change.last_edited_at,
        observed_at=parse_datetime(change.observed_at) if change.observed_at else None,
    )


@transaction.atomic
def start_build_run(
    trigger: str,
    changes: Sequence[ChangeRecord] = (),
    site_id: str = '',
) -> BuildRun:
    """Create a running ``BuildRun`` and attach the changes that caused it."""

    run = BuildRun.objects.create(trigger=trigger, site_id=site_id or '', change_count=len(changes))
    ChangeEvent.objects.bulk_create([change_event_from_record(change, run) for change in changes])
    return run


def finish_build_run(run: BuildRun, result: Any = None, error: BaseException | str | None = None) -> BuildRun:
    """Store the outcome of ``run``; ``result`` is a generator ``BuildResult``."""

    run.finished_at = timezone.now()
    if error is not None:
        run.status = BuildRun.Status.FAILED
        run.error = str(error) or error.__class__.__name__
    else:
        run.status = BuildRun.Status.PUBLISHED
    if result is not None:
        run.file_count = len(getattr(result, 'files', []) or [])
        run.deploy_url = getattr(result, 'deploy_url', None) or ''
        run.commit = getattr(result, 'commit', None) or ''
        run.broken_links = [
            {'page': link.page, 'href': link.href}
            for link in getattr(result, 'broken_links', []) or []
        ]
        run.pages = [
            {'route': page.route, 'path': page.path, 'components': list(page.components)}
            for page in getattr(result, 'pages', []) or []
        ]
    run.save()
    return run


def record_changes(changes: Iterable[ChangeRecord]) -> List[ChangeEvent]:
    """Store changes that did not lead to a build (e.g. detect-only runs)."""

    return ChangeEvent.objects.bulk_create([change_event_from_record(change) for change in changes])


def build_run_payload(run: BuildRun) -> Dict[str, Any]:
    return {
        'id': run.pk,
        'trigger': run.trigger,
        'status': run.status,
        'started_at': run.started_at.isoformat() if run.started_at else None,
        'finished_at': run.finished_at.isoformat() if run.finished_at else None,
        'file_count': run.file_count,
        'change_count': run.change_count,
        'deploy_url': run.deploy_url,
        'commit': run.commit,
        'error': run.error,
        'broken_links': run.broken_links,
        'changes': [
            {
                'type': event.change_type,
                'external_id': event.external_id,
                'title': event.title,
                'collection': event.collection,
            }
            for event in run.changes.all()
        ],
    }


def selection_payload(selection: PageSelection) -> Dict[str, Any]:
    return {
        'section': {
            'type': selection.section.section_type,
            'name': selection.section.name,
            'order': selection.section.order,
        },
        'component': selection.component.id,
        'category': selection.component.category,
        'score': selection.score,
        'scores': dict(selection.scores),
        'overridden': selection.overridden,
        'reason': selection.reason,
    }
