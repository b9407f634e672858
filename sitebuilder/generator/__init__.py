"""Static site generation: planning, copy, rendering and publishing."""

from .articles import render_area_landing, render_areas_home, render_article_page
from .builder import BuildResult, BuiltPage, build_site, load_manifest, write_manifest
from .bulk import BulkPublisher, BulkPublishResult
from .copywriter import anthropic_generator, generate_page_copy
from .linkcheck import BrokenLink, check_internal_links
from .planner import plan_pages
from .publisher import GitPublisher, deploy_url
from .renderer import render_page, render_robots, render_sitemap, render_theme_css

__all__ = [
    "BrokenLink",
    "BuildResult",
    "BuiltPage",
    "BulkPublishResult",
    "BulkPublisher",
    "GitPublisher",
    "anthropic_generator",
    "build_site",
    "check_internal_links",
    "deploy_url",
    "generate_page_copy",
    "load_manifest",
    "plan_pages",
    "render_area_landing",
    "render_areas_home",
    "render_article_page",
    "render_page",
    "render_robots",
    "render_sitemap",
    "render_theme_css",
    "write_manifest",
]
