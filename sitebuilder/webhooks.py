"""GitHub webhook verification and event routing.

Events are translated into site status writes so the workspace reflects
what GitHub is doing with the published repository.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from .generator.publisher import deploy_url
from .sync.orchestrator import STATUS_BUILDING, STATUS_FAILED, STATUS_PUBLISHED, StatusReporter

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'HTTP_X_HUB_SIGNATURE_256'
EVENT_HEADER = 'HTTP_X_GITHUB_EVENT'
DELIVERY_HEADER = 'HTTP_X_GITHUB_DELIVERY'
BOT_AUTHOR = 'sitebuilder[bot]'


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check ``X-Hub-Signature-256``; always valid when no secret is configured."""

    if not secret:
        return True
    if not signature:
        return False
    expected = 'sha256=' + hmac.new(secret.encode('utf-8'), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


class GitHubWebhookHandler:
    """Route a GitHub event to a status write-back.

    ``reporter`` may be ``None`` when no workspace is configured; events
    are then acknowledged without writing anything.
    """

    def __init__(self, reporter: StatusReporter | None, *, main_branch: str = 'main', bot_author: str = BOT_AUTHOR) -> None:
        self.reporter = reporter
        self.main_branch = main_branch
        self.bot_author = bot_author

    async def handle(self, event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.info('Handling %s event', event)
        handler = getattr(self, f'_handle_{event}', None)
        if handler is None:
            logger.info('Unhandled event type: %s', event)
            return {'handled': False, 'event': event}
        return await handler(payload or {})

    async def _report(self, status: str, **kwargs: Any) -> Optional[str]:
        if self.reporter is None or not self.reporter.site_id:
            return None
        await self.reporter.report(status, **kwargs)
        return status

    async def _handle_ping(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {'handled': True, 'action': 'pong', 'zen': payload.get('zen', '')}

    async def _handle_push(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        branch = (payload.get('ref') or '').replace('refs/heads/', '') or 'unknown'
        commits = payload.get('commits') or []
        author = ((payload.get('head_commit') or {}).get('author') or {}).get('name')
        logger.info('Push to %s with %d commit(s)', branch, len(commits))

        if author == self.bot_author:
            return {'handled': True, 'skipped': True, 'reason': 'bot-commit'}
        if branch != self.main_branch:
            return {'handled': True, 'action': 'no-action', 'branch': branch}

        status = await self._report(STATUS_BUILDING)
        return {
            'handled': True,
            'action': 'status-updated' if status else 'no-site-id',
            'branch': branch,
            'commits': len(commits),
            'status': status,
        }

    async def _handle_workflow_run(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        run = payload.get('workflow_run') or {}
        name = run.get('name', '')
        conclusion = run.get('conclusion')
        logger.info('Workflow %r %s on %s', name, conclusion, run.get('head_branch'))

        status = None
        if conclusion == 'success':
            repo = run.get('repository') or payload.get('repository') or {}
            status = await self._report(STATUS_PUBLISHED, deploy_url=deploy_url(repo.get('full_name')))
        elif conclusion == 'failure':
            status = await self._report(
                STATUS_FAILED,
                error=f"Workflow {name!r} failed. See: {run.get('html_url', '')}",
            )
        return {
            'handled': True,
            'action': 'workflow-status-synced',
            'conclusion': conclusion,
            'workflow': name,
            'status': status,
        }

    async def _handle_deployment_status(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        deployment_status = payload.get('deployment_status') or {}
        state = deployment_status.get('state')
        target_url = deployment_status.get('target_url') or deployment_status.get('environment_url')
        logger.info('Deployment %s for %s', state, deployment_status.get('environment'))

        status = None
        if state == 'success':
            status = await self._report(STATUS_PUBLISHED, deploy_url=target_url)
        elif state in ('failure', 'error'):
            description = deployment_status.get('description') or 'Unknown error'
            status = await self._report(STATUS_FAILED, error=f'Deployment {state}: {description}')
        return {'handled': True, 'action': 'deployment-synced', 'state': state, 'status': status}

    async def _handle_pull_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get('action')
        pull_request = payload.get('pull_request') or {}
        if action not in ('opened', 'closed'):
            return {'handled': True, 'action': 'no-action'}

        pr_action = 'merged' if pull_request.get('merged') else action
        status = None
        if pr_action == 'merged' and (pull_request.get('base') or {}).get('ref') == self.main_branch:
            status = await self._report(STATUS_BUILDING)
        return {'handled': True, 'action': f'pr-{pr_action}', 'pr': pull_request.get('number'), 'status': status}
