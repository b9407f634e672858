"""Publish articles from the Notion articles database in bulk."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict

from django.core.management.base import BaseCommand, CommandError

from ...conf import SiteBuilderSettings, get_settings
from ...exceptions import ConfigurationError
from ...generator import deploy_url
from ...generator.bulk import BulkPublisher, BulkPublishResult
from ...sync import NotionClient
from ...sync.articles import DEFAULT_PUBLISH_STATUS
from ...sync.content import SiteConfig, parse_site

MAX_LISTED_FAILURES = 10


class Command(BaseCommand):
    help = 'Render articles to static pages and write their URLs back to Notion.'

    def add_arguments(self, parser) -> None:
        parser.add_argument('--area', default=None, help='Only publish this area id (e.g. notion-io).')
        parser.add_argument('--batch', default=None, help='Only publish articles with this Batch ID.')
        parser.add_argument(
            '--article',
            action='append',
            default=[],
            dest='articles',
            metavar='ID',
            help='Publish this article id; may be repeated. Overrides --area and --batch.',
        )
        parser.add_argument('--status', default=DEFAULT_PUBLISH_STATUS, help='Publish Status to select.')
        parser.add_argument('--output', default=None, help='Output directory.')
        parser.add_argument('--theme', default=None, help='Carbon theme (White, G10, G90, G100).')
        parser.add_argument('--base-url', default=None, help='Absolute URL the pages are served from.')
        parser.add_argument('--resume', action='store_true', help='Skip articles already built in the output.')
        parser.add_argument('--no-write-back', action='store_true', help='Do not write URLs back to Notion.')

    def handle(self, *args, **options) -> None:
        conf = get_settings()
        if not conf.notion_api_key:
            raise CommandError('NOTION_API_KEY must be set to publish articles.')
        if not options['articles'] and not conf.databases.get('articles'):
            raise CommandError('NOTION_ARTICLES_DB must be set unless article ids are given.')

        self.verbosity = options['verbosity']
        try:
            result = asyncio.run(self._publish(conf, options))
        except ConfigurationError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(
            self.style.SUCCESS(
                f'Built {len(result.built)} article(s), skipped {len(result.skipped)}, failed {len(result.failed)}'
            )
        )
        for failure in result.failed[:MAX_LISTED_FAILURES]:
            self.stdout.write(self.style.WARNING(f'  {failure.title or failure.id}: {failure.error}'))
        if result.written_back or result.write_back_failed:
            self.stdout.write(f'Wrote back {result.written_back} URL(s), {result.write_back_failed} failed')
        for link in result.broken_links:
            self.stdout.write(self.style.WARNING(f'  broken link on {link.page}: {link.href}'))

    def _progress(self, phase: str, current: int, total: int) -> None:
        if self.verbosity > 1:
            self.stdout.write(f'  [{phase}] {current}/{total}')

    async def _publish(self, conf: SiteBuilderSettings, options: Dict[str, Any]) -> BulkPublishResult:
        async with NotionClient(conf.notion_api_key) as client:
            site = parse_site(await client.retrieve_record(conf.site_id)) if conf.site_id else SiteConfig()
            base = options['base_url'] or (None if site.domain else deploy_url(conf.github_repo))
            if base:
                site = replace(site, domain=base)
            if options['theme']:
                site = replace(site, theme=options['theme'])

            publisher = BulkPublisher(
                client,
                conf.databases,
                site,
                write_batch_size=conf.write_batch_size,
                write_batch_delay=conf.write_batch_delay,
            )
            return await publisher.publish(
                Path(options['output'] or conf.output_dir),
                area_id=options['area'],
                batch_id=options['batch'],
                article_ids=options['articles'],
                status=options['status'] or None,
                write_back=not options['no_write_back'],
                resume=options['resume'],
                on_progress=self._progress,
            )
