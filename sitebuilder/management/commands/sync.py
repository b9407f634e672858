"""Two-way sync between the Notion workspace and the generated site."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

from asgiref.sync import sync_to_async
from django.core.management.base import BaseCommand, CommandError

from ...conf import SiteBuilderSettings, get_settings
from ...exceptions import ConfigurationError
from ...generator import load_manifest
from ...models import BuildRun
from ...services import (
    ai_generator_from_settings,
    build_and_publish,
    finish_build_run,
    record_changes,
    selector_from_settings,
    start_build_run,
)
from ...sync import ChangeDetector, ChangeRecord, NotionClient, SnapshotStore, SyncOrchestrator
from ...sync.pipeline import ContentSync

MODES = ('detect-only', 'pull-only', 'push-only', 'full')
SITE_DATA_NAME = 'site-data.json'


class Command(BaseCommand):
    help = 'Sync content from Notion, rebuild the site on change and report status back.'

    def add_arguments(self, parser) -> None:
        parser.add_argument('mode', nargs='?', default='full', choices=MODES)
        parser.add_argument('--interval', type=float, default=None, help='Polling interval in seconds.')
        parser.add_argument('--once', action='store_true', help='Run a single cycle instead of polling.')
        parser.add_argument('--output', default=None, help='Build output directory.')
        parser.add_argument(
            '--reconcile',
            action='store_true',
            help='Re-read every collection in full and report deleted records (detect-only).',
        )

    def handle(self, *args, **options) -> None:
        conf = get_settings()
        if not conf.notion_api_key:
            raise CommandError('NOTION_API_KEY must be set to sync with Notion.')

        try:
            asyncio.run(self._run(conf, options))
        except ConfigurationError as exc:
            raise CommandError(str(exc)) from exc
        except KeyboardInterrupt:
            self.stdout.write('Sync stopped.')

    async def _run(self, conf: SiteBuilderSettings, options: Dict[str, Any]) -> None:
        mode = options['mode']
        output_dir = Path(options['output'] or conf.output_dir)
        async with NotionClient(conf.notion_api_key) as client:
            if mode == 'detect-only':
                await self._detect_only(client, conf, options)
            elif mode == 'pull-only':
                await self._pull_only(client, conf, output_dir)
            elif mode == 'push-only':
                await self._push_only(client, conf, output_dir)
            else:
                await self._full(client, conf, options, output_dir)

    def _write_changes(self, changes: Sequence[ChangeRecord]) -> None:
        if not changes:
            self.stdout.write('No changes detected')
            return
        self.stdout.write(f'{len(changes)} change(s):')
        for change in changes:
            self.stdout.write(f'  {change.type}: {change.title} ({change.collection})')

    async def _detect_only(self, client: NotionClient, conf: SiteBuilderSettings, options: Dict[str, Any]) -> None:
        store = SnapshotStore(conf.state_path)
        detector = ChangeDetector(client, conf.tracked_collections, snapshot=store.load())

        if options['reconcile']:
            changes = await detector.reconcile()
            store.save(detector.snapshot)
            await sync_to_async(record_changes)(changes)
            self._write_changes(changes)
            return

        if not len(detector.snapshot):
            count = await detector.snapshot_all()
            store.save(detector.snapshot)
            self.stdout.write(f'Snapshot: tracking {count} records')
            if options['once']:
                return

        async def report(changes: List[ChangeRecord]) -> None:
            await sync_to_async(record_changes)(changes)
            self._write_changes(changes)

        orchestrator = SyncOrchestrator(
            detector,
            build=report,
            interval=options['interval'] or conf.poll_interval,
            store=store,
        )
        if options['once']:
            changes = await orchestrator.run_once(build=False)
            await report(changes)
            return
        await orchestrator.start()

    async def _pull_only(self, client: NotionClient, conf: SiteBuilderSettings, output_dir: Path) -> None:
        site_data = await ContentSync(client, conf).pull()
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / SITE_DATA_NAME
        target.write_text(json.dumps(site_data.to_dict(), indent=2, default=str), encoding='utf-8')
        self.stdout.write(self.style.SUCCESS(f'Wrote {len(site_data.pages)} pages to {target}'))

    async def _push_only(self, client: NotionClient, conf: SiteBuilderSettings, output_dir: Path) -> None:
        result = load_manifest(output_dir)
        succeeded, failed = await ContentSync(client, conf).push(result)
        self.stdout.write(f'Pushed build results: {succeeded} written, {failed} failed')

    async def _full(
        self,
        client: NotionClient,
        conf: SiteBuilderSettings,
        options: Dict[str, Any],
        output_dir: Path,
    ) -> None:
        content_sync = ContentSync(client, conf)
        selector = selector_from_settings(conf)
        ai_generate = ai_generator_from_settings(conf)
        store = SnapshotStore(conf.state_path)
        detector = ChangeDetector(client, conf.tracked_collections, snapshot=store.load())

        def build_fn(site_data):
            return build_and_publish(
                site_data,
                conf,
                output_dir=output_dir,
                selector=selector,
                ai_generate=ai_generate,
            )

        async def build(changes: List[ChangeRecord]) -> Any:
            trigger = BuildRun.Trigger.CLI if options['once'] else BuildRun.Trigger.POLL
            run = await sync_to_async(start_build_run)(trigger, changes, conf.site_id)
            outcome = await content_sync.full(build_fn)
            await sync_to_async(finish_build_run)(run, outcome.build_result, outcome.error)
            if outcome.error is not None:
                raise outcome.error
            self.stdout.write(self.style.SUCCESS(
                f'Built {len(outcome.build_result.files)} files; deployed to {outcome.deploy_url or "(not published)"}'
            ))
            return outcome.build_result

        # ContentSync reports statuses itself; the orchestrator only detects.
        orchestrator = SyncOrchestrator(
            detector,
            build=build,
            interval=options['interval'] or conf.poll_interval,
            store=store,
        )
        if options['once']:
            if not len(detector.snapshot):
                count = await detector.snapshot_all()
                store.save(detector.snapshot)
                self.stdout.write(f'Snapshot: tracking {count} records')
            outcome = await orchestrator.run_cycle()
            self._write_changes(outcome.changes)
            if outcome.error is not None:
                raise CommandError(f'Build failed: {outcome.error}')
            return
        await orchestrator.start()
