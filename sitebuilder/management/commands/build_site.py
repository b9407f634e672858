"""One-off build of the site, from Notion or from the bundled demo data."""

from __future__ import annotations

import asyncio
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from ...conf import get_settings
from ...exceptions import BuildError, ConfigurationError
from ...models import BuildRun
from ...services import (
    ai_generator_from_settings,
    build_and_publish,
    finish_build_run,
    start_build_run,
)
from ...sync import NotionClient, fetch_site, load_site_file


class Command(BaseCommand):
    help = 'Build the static site once and optionally publish it.'

    def add_arguments(self, parser) -> None:
        parser.add_argument('--output', default=None, help='Build output directory.')
        parser.add_argument(
            '--demo',
            nargs='?',
            const='',
            default=None,
            metavar='FILE',
            help='Build from a YAML/JSON site file (the bundled demo site when no file is given).',
        )
        parser.add_argument('--publish', action='store_true', help='Commit and push the build.')

    def handle(self, *args, **options) -> None:
        conf = get_settings()
        output_dir = Path(options['output'] or conf.output_dir)

        try:
            if options['demo'] is not None:
                site_data = load_site_file(options['demo'] or None)
            elif conf.has_notion:
                site_data = asyncio.run(self._fetch(conf))
            else:
                raise CommandError('Set NOTION_API_KEY and NOTION_SITE_ID, or pass --demo.')
        except ConfigurationError as exc:
            raise CommandError(str(exc)) from exc

        run = start_build_run(BuildRun.Trigger.CLI, site_id=site_data.site.id)
        try:
            result = build_and_publish(
                site_data,
                conf,
                output_dir=output_dir,
                publish=options['publish'],
                ai_generate=ai_generator_from_settings(conf),
            )
        except (BuildError, ConfigurationError) as exc:
            finish_build_run(run, error=exc)
            raise CommandError(f'Build failed: {exc}') from exc
        finish_build_run(run, result)

        self.stdout.write(self.style.SUCCESS(f'Built {len(result.files)} files into {result.output_dir}'))
        for link in result.broken_links:
            self.stdout.write(self.style.WARNING(f'  broken link on {link.page}: {link.href}'))
        if result.commit:
            self.stdout.write(f'Published commit {result.commit[:12]}')

    async def _fetch(self, conf):
        async with NotionClient(conf.notion_api_key) as client:
            return await fetch_site(client, conf.databases, conf.site_id)
