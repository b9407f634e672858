from __future__ import annotations

import hashlib
import hmac
import json
import tempfile
import textwrap
from io import StringIO
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from asgiref.sync import async_to_sync
from django.core.cache import caches
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import Client, RequestFactory, TestCase, TransactionTestCase, override_settings
from django.urls import reverse

from sitebuilder.forms import SectionsForm
from sitebuilder.middleware import RouteRateLimitMiddleware
from sitebuilder.models import BuildRun, ChangeEvent, WebhookDelivery
from sitebuilder.services import finish_build_run, record_changes, start_build_run
from sitebuilder.sync.detector import ChangeRecord
from sitebuilder.sync.notion import Record
from sitebuilder.webhooks import BOT_AUTHOR, GitHubWebhookHandler, verify_signature


def sign(secret: str, body: bytes) -> str:
    return 'sha256=' + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class FakeReporter:
    def __init__(self, site_id: str = 'site-1') -> None:
        self.site_id = site_id
        self.reports = []

    async def report(self, status, **kwargs):
        self.reports.append((status, kwargs))
        return True


class SectionsFormTests(TestCase):
    def test_sections_parse_pipe_and_tab_lines(self) -> None:
        form = SectionsForm({
            'business_type': 'SaaS',
            'sections': textwrap.dedent(
                """
                Hero | Welcome
                Features | Why us | 3 features

                CTA\tGet started
                FAQ | Questions | | faq-accordion
                """
            ),
        })

        self.assertTrue(form.is_valid(), form.errors)
        sections = form.cleaned_data['sections']
        self.assertEqual([section.section_type for section in sections], ['Hero', 'Features', 'CTA', 'FAQ'])
        self.assertEqual(sections[1].description, '3 features')
        self.assertEqual(sections[2].name, 'Get started')
        self.assertEqual(sections[3].component_override, 'faq-accordion')
        self.assertIsNone(sections[0].component_override)
        self.assertEqual([section.order for section in sections], [0, 1, 2, 3])

    def test_line_without_type_is_rejected(self) -> None:
        form = SectionsForm({'sections': 'Hero | Welcome\n | Missing type'})

        self.assertFalse(form.is_valid())
        self.assertIn('Section line 2 is missing a section type.', form.errors['sections'])

    def test_too_many_fields_are_rejected(self) -> None:
        form = SectionsForm({'sections': 'Hero | a | b | c | d'})

        self.assertFalse(form.is_valid())
        self.assertIn('more than four fields', form.errors['sections'][0])


class SelectViewTests(TestCase):
    def setUp(self) -> None:
        self.client: Client = Client()
        caches['default'].clear()

    def test_select_returns_a_component_per_section(self) -> None:
        response = self.client.post(
            reverse('sitebuilder:select'),
            data={'business_type': 'SaaS', 'sections': 'Hero | Welcome\nPricing | Plans | 3 tiers\nCTA | Start now'},
        )

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['business_type'], 'SaaS')
        self.assertEqual([item['category'] for item in data['selections']], ['hero', 'pricing', 'cta'])
        self.assertEqual(data['selections'][1]['section']['name'], 'Plans')
        self.assertIn('category', data['selections'][0]['scores'])

    def test_select_rejects_empty_outline(self) -> None:
        response = self.client.post(reverse('sitebuilder:select'), data={'sections': ''})

        self.assertEqual(response.status_code, 400)
        self.assertIn('sections', response.json()['errors'])

    def test_select_requires_post(self) -> None:
        response = self.client.get(reverse('sitebuilder:select'))

        self.assertEqual(response.status_code, 405)


class BuildsViewTests(TestCase):
    def setUp(self) -> None:
        self.client: Client = Client()
        caches['default'].clear()

    def test_builds_lists_runs_with_their_changes(self) -> None:
        change = ChangeRecord(type='updated', external_id='page-1', title='Home', observed_at='2024-01-01T00:00:00Z', collection='pages')
        failed = start_build_run(BuildRun.Trigger.POLL, [change], site_id='site-1')
        finish_build_run(failed, error='boom')
        published = start_build_run(BuildRun.Trigger.CLI)
        finish_build_run(published, SimpleNamespace(files=['index.html'], deploy_url='https://acme.github.io/site/', commit='abc', broken_links=[], pages=[]))

        response = self.client.get(reverse('sitebuilder:builds'))

        self.assertEqual(response.status_code, 200)
        builds = {build['id']: build for build in response.json()['builds']}
        self.assertEqual(builds[failed.pk]['status'], 'failed')
        self.assertEqual(builds[failed.pk]['error'], 'boom')
        self.assertEqual(builds[failed.pk]['changes'], [
            {'type': 'updated', 'external_id': 'page-1', 'title': 'Home', 'collection': 'pages'},
        ])
        self.assertEqual(builds[published.pk]['file_count'], 1)
        self.assertEqual(builds[published.pk]['commit'], 'abc')

    def test_builds_filter_by_status_and_limit(self) -> None:
        for _ in range(3):
            finish_build_run(start_build_run(BuildRun.Trigger.CLI))
        finish_build_run(start_build_run(BuildRun.Trigger.CLI), error='boom')

        failed = self.client.get(reverse('sitebuilder:builds'), {'status': 'failed'}).json()['builds']
        limited = self.client.get(reverse('sitebuilder:builds'), {'limit': '2'}).json()['builds']
        bad_limit = self.client.get(reverse('sitebuilder:builds'), {'limit': 'many'}).json()['builds']

        self.assertEqual(len(failed), 1)
        self.assertEqual(len(limited), 2)
        self.assertEqual(len(bad_limit), 4)


class BuildRunServiceTests(TestCase):
    def test_start_build_run_records_changes(self) -> None:
        changes = [
            ChangeRecord(type='created', external_id='svc-1', title='Reports', observed_at='2024-01-01T00:00:00Z'),
            ChangeRecord(type='updated', external_id='page-1', title='Home', observed_at='2024-01-01T00:00:00Z'),
        ]

        run = start_build_run(BuildRun.Trigger.POLL, changes, site_id='site-1')

        self.assertEqual(run.status, BuildRun.Status.RUNNING)
        self.assertEqual(run.change_count, 2)
        self.assertEqual(list(run.changes.values_list('external_id', flat=True)), ['svc-1', 'page-1'])

    def test_finish_build_run_with_error_marks_failure(self) -> None:
        run = start_build_run(BuildRun.Trigger.CLI)

        finish_build_run(run, error=RuntimeError('git push rejected'))

        run.refresh_from_db()
        self.assertEqual(run.status, BuildRun.Status.FAILED)
        self.assertEqual(run.error, 'git push rejected')
        self.assertIsNotNone(run.finished_at)

    def test_record_changes_without_a_build(self) -> None:
        record_changes([ChangeRecord(type='deleted', external_id='tm-1', title='Alex', observed_at='2024-01-01T00:00:00Z')])

        event = ChangeEvent.objects.get()
        self.assertIsNone(event.build_run)
        self.assertEqual(event.change_type, ChangeEvent.ChangeType.DELETED)


@override_settings(GITHUB_WEBHOOK_SECRET='s3cret', NOTION_API_KEY='')
class GitHubWebhookViewTests(TestCase):
    def setUp(self) -> None:
        self.client: Client = Client()
        caches['default'].clear()

    def post(self, event: str, payload, signature: str | None = None, delivery: str = 'delivery-1'):
        body = json.dumps(payload).encode() if not isinstance(payload, bytes) else payload
        headers = {'HTTP_X_GITHUB_EVENT': event, 'HTTP_X_GITHUB_DELIVERY': delivery}
        headers['HTTP_X_HUB_SIGNATURE_256'] = signature if signature is not None else sign('s3cret', body)
        return self.client.post(reverse('sitebuilder:github_webhook'), data=body, content_type='application/json', **headers)

    def test_invalid_signature_is_rejected(self) -> None:
        response = self.post('push', {'ref': 'refs/heads/main'}, signature='sha256=deadbeef')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'error': 'Invalid signature'})
        self.assertFalse(WebhookDelivery.objects.exists())

    def test_ping_is_stored_and_answered(self) -> None:
        response = self.post('ping', {'zen': 'Keep it logically awesome.'})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['received'])
        self.assertEqual(data['action'], 'pong')
        delivery = WebhookDelivery.objects.get()
        self.assertEqual(delivery.delivery_id, 'delivery-1')
        self.assertTrue(delivery.signature_valid)
        self.assertTrue(delivery.handled)

    def test_push_without_workspace_reports_nothing(self) -> None:
        response = self.post('push', {'ref': 'refs/heads/main', 'commits': [{}, {}]})

        data = response.json()
        self.assertEqual(data['action'], 'no-site-id')
        self.assertEqual(data['commits'], 2)
        self.assertEqual(WebhookDelivery.objects.get().status_written, '')

    def test_unknown_event_is_acknowledged(self) -> None:
        response = self.post('issues', {'action': 'opened'})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()['handled'])
        self.assertEqual(WebhookDelivery.objects.get().action, 'opened')

    def test_missing_event_and_bad_body(self) -> None:
        self.assertEqual(self.post('', {}).status_code, 400)
        self.assertEqual(self.post('push', b'not json').status_code, 400)
        self.assertEqual(self.post('push', b'[1, 2]').status_code, 400)


class SignatureTests(TestCase):
    def test_verify_signature(self) -> None:
        body = b'{"zen": "hi"}'

        self.assertTrue(verify_signature('', body, None))
        self.assertTrue(verify_signature('key', body, sign('key', body)))
        self.assertFalse(verify_signature('key', body, sign('other', body)))
        self.assertFalse(verify_signature('key', body, None))


class GitHubWebhookHandlerTests(TestCase):
    def setUp(self) -> None:
        self.reporter = FakeReporter()
        self.handler = GitHubWebhookHandler(self.reporter)

    def handle(self, event: str, payload):
        return async_to_sync(self.handler.handle)(event, payload)

    def test_bot_pushes_are_skipped(self) -> None:
        result = self.handle('push', {'ref': 'refs/heads/main', 'head_commit': {'author': {'name': BOT_AUTHOR}}})

        self.assertEqual(result, {'handled': True, 'skipped': True, 'reason': 'bot-commit'})
        self.assertEqual(self.reporter.reports, [])

    def test_push_to_main_reports_building(self) -> None:
        result = self.handle('push', {'ref': 'refs/heads/main', 'commits': [{}], 'head_commit': {'author': {'name': 'Dana'}}})

        self.assertEqual(result['action'], 'status-updated')
        self.assertEqual(result['status'], 'Building')
        self.assertEqual(self.reporter.reports, [('Building', {})])

    def test_push_to_other_branch_is_ignored(self) -> None:
        result = self.handle('push', {'ref': 'refs/heads/feature'})

        self.assertEqual(result, {'handled': True, 'action': 'no-action', 'branch': 'feature'})

    def test_failed_workflow_reports_build_failure(self) -> None:
        result = self.handle('workflow_run', {
            'workflow_run': {'name': 'Deploy', 'conclusion': 'failure', 'html_url': 'https://github.com/acme/site/actions/runs/1'},
        })

        self.assertEqual(result['status'], 'Build Failed')
        status, kwargs = self.reporter.reports[0]
        self.assertEqual(status, 'Build Failed')
        self.assertIn("Workflow 'Deploy' failed.", kwargs['error'])

    def test_successful_workflow_reports_deploy_url(self) -> None:
        self.handle('workflow_run', {
            'workflow_run': {'name': 'Deploy', 'conclusion': 'success'},
            'repository': {'full_name': 'acme/site'},
        })

        self.assertEqual(self.reporter.reports, [('Published', {'deploy_url': 'https://acme.github.io/site/'})])

    def test_deployment_status_success(self) -> None:
        result = self.handle('deployment_status', {
            'deployment_status': {'state': 'success', 'target_url': 'https://acme.github.io/site/'},
        })

        self.assertEqual(result['action'], 'deployment-synced')
        self.assertEqual(self.reporter.reports, [('Published', {'deploy_url': 'https://acme.github.io/site/'})])

    def test_merged_pull_request_into_main_reports_building(self) -> None:
        result = self.handle('pull_request', {
            'action': 'closed',
            'pull_request': {'number': 7, 'merged': True, 'base': {'ref': 'main'}},
        })

        self.assertEqual(result, {'handled': True, 'action': 'pr-merged', 'pr': 7, 'status': 'Building'})

    def test_reporter_without_site_id_writes_nothing(self) -> None:
        handler = GitHubWebhookHandler(FakeReporter(site_id=''))

        result = async_to_sync(handler.handle)('push', {'ref': 'refs/heads/main'})

        self.assertEqual(result['action'], 'no-site-id')


class RateLimitMiddlewareTests(TestCase):
    def setUp(self) -> None:
        self.factory = RequestFactory()
        caches['default'].clear()

    @override_settings(THROTTLED_ROUTES=['sitebuilder:select'])
    def test_rate_limit_blocks_after_threshold(self) -> None:
        def handler(request):
            from django.http import HttpResponse

            return HttpResponse('OK')

        middleware = RouteRateLimitMiddleware(handler, limit=2, window=60, key_prefix='test-rate')

        def build_request():
            req = self.factory.post('/select/')
            req.resolver_match = SimpleNamespace(namespace='sitebuilder', url_name='select', view_name='sitebuilder:select')
            req.META['REMOTE_ADDR'] = '127.0.0.1'
            return req

        self.assertIsNone(middleware.process_view(build_request(), handler, (), {}))
        self.assertIsNone(middleware.process_view(build_request(), handler, (), {}))
        third = middleware.process_view(build_request(), handler, (), {})
        self.assertEqual(third.status_code, 429)
        self.assertEqual(json.loads(third.content)['route'], 'sitebuilder:select')
        self.assertEqual(third['Retry-After'], '60')

    @override_settings(THROTTLED_ROUTES=['sitebuilder:select'])
    def test_other_routes_are_not_throttled(self) -> None:
        middleware = RouteRateLimitMiddleware(lambda request: None, limit=1, window=60, key_prefix='test-rate')
        req = self.factory.get('/builds/')
        req.resolver_match = SimpleNamespace(namespace='sitebuilder', url_name='builds', view_name='sitebuilder:builds')

        for _ in range(3):
            self.assertIsNone(middleware.process_view(req, None, (), {}))


@override_settings(ANTHROPIC_API_KEY='', SITEBUILDER_PUBLISH_DIR=None)
class BuildSiteCommandTests(TestCase):
    def test_demo_build_records_a_published_run(self) -> None:
        with tempfile.TemporaryDirectory() as output:
            stdout = StringIO()
            call_command('build_site', '--demo', '--output', output, stdout=stdout)

            self.assertTrue((Path(output) / 'index.html').exists())
            self.assertTrue((Path(output) / 'build-manifest.json').exists())

        run = BuildRun.objects.get()
        self.assertEqual(run.trigger, BuildRun.Trigger.CLI)
        self.assertEqual(run.status, BuildRun.Status.PUBLISHED)
        self.assertEqual(run.site_id, 'demo-site')
        self.assertGreater(run.file_count, 0)
        self.assertIn('Built', stdout.getvalue())


class FakeNotionClient:
    """Stands in for ``NotionClient`` inside the ``sync`` command."""

    collections: dict = {}
    status_writes: list = []

    def __init__(self, api_key, **kwargs) -> None:
        self.api_key = api_key

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def iter_records(self, collection_id, edited_at_or_after=None):
        for record in list(self.collections.get(collection_id, [])):
            yield record

    async def write_status(self, record_id, fields) -> bool:
        self.status_writes.append((record_id, fields))
        return True


class FakeContentSync:
    calls: list = []
    error: BaseException | None = None

    def __init__(self, client, conf, reporter=None) -> None:
        self.client = client

    async def full(self, build_fn):
        self.calls.append('full')
        if self.error is not None:
            return SimpleNamespace(build_result=None, deploy_url=None, error=self.error)
        result = SimpleNamespace(files=['index.html'], deploy_url='https://acme.github.io/site/', commit='', broken_links=[], pages=[])
        return SimpleNamespace(build_result=result, deploy_url=result.deploy_url, error=None)


def notion_record(record_id: str, title: str, edited: str = '2024-05-01T10:00:00.000Z') -> Record:
    return Record(
        id=record_id,
        last_edited_at=edited,
        properties={'Name': {'type': 'title', 'title': [{'plain_text': title}]}},
    )


class SyncCommandTests(TransactionTestCase):
    def setUp(self) -> None:
        state_dir = tempfile.TemporaryDirectory()
        self.addCleanup(state_dir.cleanup)
        self.state_path = Path(state_dir.name) / 'state.json'

        overrides = override_settings(
            NOTION_API_KEY='secret-token',
            NOTION_SITE_ID='site-1',
            SITEBUILDER_DATABASES={'pages': 'db-pages'},
            SITEBUILDER_STATE_PATH=str(self.state_path),
            SITEBUILDER_OUTPUT_DIR=state_dir.name,
            SITEBUILDER_PUBLISH_DIR=None,
            ANTHROPIC_API_KEY='',
        )
        overrides.enable()
        self.addCleanup(overrides.disable)

        FakeNotionClient.collections = {
            'db-pages': [notion_record('page-1', 'Home'), notion_record('page-2', 'Pricing')],
        }
        FakeNotionClient.status_writes = []
        FakeContentSync.calls = []
        FakeContentSync.error = None
        for target, replacement in (('NotionClient', FakeNotionClient), ('ContentSync', FakeContentSync)):
            patcher = patch(f'sitebuilder.management.commands.sync.{target}', replacement)
            patcher.start()
            self.addCleanup(patcher.stop)

    def run_sync(self, *args: str) -> str:
        stdout = StringIO()
        call_command('sync', *args, stdout=stdout)
        return stdout.getvalue()

    def edit_home(self) -> None:
        FakeNotionClient.collections['db-pages'][0] = notion_record('page-1', 'Home v2', edited='2024-05-02T10:00:00.000Z')

    def test_detect_only_once_snapshots_then_reports_changes(self) -> None:
        first = self.run_sync('detect-only', '--once')
        self.assertIn('Snapshot: tracking 2 records', first)
        self.assertTrue(self.state_path.exists())

        self.assertIn('No changes detected', self.run_sync('detect-only', '--once'))

        self.edit_home()
        output = self.run_sync('detect-only', '--once')

        self.assertIn('1 change(s):', output)
        self.assertIn('updated: Home v2 (Pages)', output)
        event = ChangeEvent.objects.get()
        self.assertEqual(event.external_id, 'page-1')
        self.assertIsNone(event.build_run)

    def test_missing_api_key_is_a_command_error(self) -> None:
        with override_settings(NOTION_API_KEY=''):
            with self.assertRaises(CommandError):
                self.run_sync('detect-only', '--once')

    def test_full_once_without_changes_does_not_build(self) -> None:
        self.run_sync('detect-only', '--once')

        output = self.run_sync('full', '--once')

        self.assertIn('No changes detected', output)
        self.assertEqual(FakeContentSync.calls, [])
        self.assertFalse(BuildRun.objects.exists())

    def test_full_once_builds_when_a_record_changed(self) -> None:
        self.run_sync('detect-only', '--once')
        self.edit_home()

        output = self.run_sync('full', '--once')

        self.assertIn('1 change(s):', output)
        self.assertEqual(FakeContentSync.calls, ['full'])
        run = BuildRun.objects.get()
        self.assertEqual(run.status, BuildRun.Status.PUBLISHED)
        self.assertEqual(run.change_count, 1)
        self.assertEqual(run.file_count, 1)

        self.assertIn('No changes detected', self.run_sync('full', '--once'))
        self.assertEqual(FakeContentSync.calls, ['full'])

    def test_full_once_build_failure_exits_with_command_error(self) -> None:
        self.run_sync('detect-only', '--once')
        self.edit_home()
        FakeContentSync.error = RuntimeError('git push rejected')

        with self.assertRaises(CommandError) as raised:
            self.run_sync('full', '--once')

        self.assertIn('git push rejected', str(raised.exception))
        self.assertEqual(BuildRun.objects.get().status, BuildRun.Status.FAILED)


class FakeArticleClient:
    """Stands in for ``NotionClient`` inside the ``publish_articles`` command."""

    records: dict = {}
    writes: list = []

    def __init__(self, api_key, **kwargs) -> None:
        self.api_key = api_key

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def retrieve_record(self, record_id):
        return self.records[record_id]

    async def query_all(self, collection_id, *, filter=None, sorts=None):
        area = filter['and'][0]['select']['equals']
        return [
            record
            for record in self.records.values()
            if record.properties.get('Area of IO', {}).get('select', {}).get('name') == area
        ]

    async def iter_block_children(self, block_id):
        for block in ():
            yield block

    async def write_batched(self, updates, *, batch_size=3, delay=0.35):
        self.writes.extend(updates)
        return len(updates), 0


def article(record_id: str, title: str, area: str = 'Notion IO') -> Record:
    return Record(
        id=record_id,
        last_edited_at='',
        properties={
            'Article Title': {'type': 'title', 'title': [{'plain_text': title}]},
            'Area of IO': {'type': 'select', 'select': {'name': area}},
            'Publish Status': {'type': 'select', 'select': {'name': 'Approved'}},
        },
    )


class PublishArticlesCommandTests(TestCase):
    def setUp(self) -> None:
        output = tempfile.TemporaryDirectory()
        self.addCleanup(output.cleanup)
        self.output = Path(output.name)

        overrides = override_settings(
            NOTION_API_KEY='secret-token',
            NOTION_SITE_ID='site-1',
            SITEBUILDER_DATABASES={'articles': 'db-articles'},
            SITEBUILDER_OUTPUT_DIR=output.name,
            SITEBUILDER_WRITE_BATCH_DELAY=0,
            GITHUB_REPO='',
        )
        overrides.enable()
        self.addCleanup(overrides.disable)

        FakeArticleClient.records = {
            'site-1': Record(
                id='site-1',
                last_edited_at='',
                properties={
                    'Site Name': {'type': 'title', 'title': [{'plain_text': 'Acme'}]},
                    'Domain': {'type': 'url', 'url': 'https://acme.test'},
                    'Theme': {'type': 'select', 'select': {'name': 'White'}},
                },
            ),
            'a1': article('a1', 'Notion databases'),
            'd1': article('d1', 'Dashboards', area='Data IO'),
        }
        FakeArticleClient.writes = []
        patcher = patch('sitebuilder.management.commands.publish_articles.NotionClient', FakeArticleClient)
        patcher.start()
        self.addCleanup(patcher.stop)

    def publish(self, *args: str) -> str:
        stdout = StringIO()
        call_command('publish_articles', *args, stdout=stdout)
        return stdout.getvalue()

    def test_area_publish_writes_pages_and_urls(self) -> None:
        output = self.publish('--area', 'notion-io')

        self.assertIn('Built 1 article(s), skipped 0, failed 0', output)
        self.assertIn('Wrote back 1 URL(s), 0 failed', output)
        page = self.output / 'areas' / 'notion-io' / 'notion-databases' / 'index.html'
        self.assertIn('data-carbon-theme="white"', page.read_text(encoding='utf-8'))
        self.assertTrue((self.output / 'areas' / 'index.html').exists())
        record_id, fields = FakeArticleClient.writes[0]
        self.assertEqual(record_id, 'a1')
        self.assertEqual(fields['Published URL'], {'url': 'https://acme.test/areas/notion-io/notion-databases/'})

    def test_no_write_back_and_resume(self) -> None:
        self.publish('--no-write-back')
        self.assertEqual(FakeArticleClient.writes, [])

        output = self.publish('--resume', '--base-url', 'https://docs.acme.test', '--theme', 'G100')

        self.assertIn('Built 0 article(s), skipped 2, failed 0', output)
        self.assertEqual(FakeArticleClient.writes, [])

    def test_missing_articles_database_is_a_command_error(self) -> None:
        with override_settings(SITEBUILDER_DATABASES={}):
            with self.assertRaises(CommandError):
                self.publish()
