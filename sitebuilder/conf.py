from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from django.conf import settings

# Label shown in change output -> key in SITEBUILDER_DATABASES
TRACKED_COLLECTIONS = (
    ('Sites', 'sites'),
    ('Pages', 'pages'),
    ('Sections', 'sections'),
    ('Services', 'services'),
    ('Testimonials', 'testimonials'),
    ('Team', 'team'),
)


@dataclass(frozen=True)
class SiteBuilderSettings:
    """Snapshot of the ``SITEBUILDER_*``/``NOTION_*`` Django settings."""

    notion_api_key: str = ''
    site_id: str = ''
    databases: Dict[str, str] = field(default_factory=dict)
    github_repo: str = ''
    github_branch: str = 'gh-pages'
    github_remote: str = 'origin'
    github_webhook_secret: str = ''
    output_dir: Path = Path('dist')
    publish_dir: Optional[Path] = None
    state_path: Path = Path('.notion-sync-state.json')
    poll_interval: float = 60.0
    write_batch_size: int = 3
    write_batch_delay: float = 0.35
    selector_config_path: Optional[Path] = None
    registry_path: Optional[Path] = None
    anthropic_api_key: str = ''
    ai_model: str = 'claude-sonnet-4-20250514'

    @property
    def has_notion(self) -> bool:
        return bool(self.notion_api_key and self.site_id)

    @property
    def tracked_collections(self) -> Dict[str, str]:
        return {
            label: self.databases[key]
            for label, key in TRACKED_COLLECTIONS
            if self.databases.get(key)
        }


def _optional_path(value: object) -> Optional[Path]:
    return Path(value) if value else None


def get_settings() -> SiteBuilderSettings:
    return SiteBuilderSettings(
        notion_api_key=getattr(settings, 'NOTION_API_KEY', ''),
        site_id=getattr(settings, 'NOTION_SITE_ID', ''),
        databases={key: value for key, value in getattr(settings, 'SITEBUILDER_DATABASES', {}).items() if value},
        github_repo=getattr(settings, 'GITHUB_REPO', ''),
        github_branch=getattr(settings, 'GITHUB_BRANCH', 'gh-pages'),
        github_remote=getattr(settings, 'GITHUB_REMOTE', 'origin'),
        github_webhook_secret=getattr(settings, 'GITHUB_WEBHOOK_SECRET', ''),
        output_dir=Path(getattr(settings, 'SITEBUILDER_OUTPUT_DIR', 'dist')),
        publish_dir=_optional_path(getattr(settings, 'SITEBUILDER_PUBLISH_DIR', None)),
        state_path=Path(getattr(settings, 'SITEBUILDER_STATE_PATH', '.notion-sync-state.json')),
        poll_interval=float(getattr(settings, 'SITEBUILDER_POLL_INTERVAL', 60.0)),
        write_batch_size=int(getattr(settings, 'SITEBUILDER_WRITE_BATCH_SIZE', 3)),
        write_batch_delay=float(getattr(settings, 'SITEBUILDER_WRITE_BATCH_DELAY', 0.35)),
        selector_config_path=_optional_path(getattr(settings, 'SITEBUILDER_SELECTOR_CONFIG', None)),
        registry_path=_optional_path(getattr(settings, 'SITEBUILDER_REGISTRY_PATH', None)),
        anthropic_api_key=getattr(settings, 'ANTHROPIC_API_KEY', ''),
        ai_model=getattr(settings, 'SITEBUILDER_AI_MODEL', 'claude-sonnet-4-20250514'),
    )
