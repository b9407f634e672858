"""Publish a built site to a git repository served by GitHub Pages."""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from ..exceptions import BuildError

logger = logging.getLogger(__name__)

PUSH_RETRY_DELAYS = (2, 4, 8, 16)

PAGES_WORKFLOW = """# Deploy static site to GitHub Pages
name: Deploy to Pages

on:
  push:
    branches: ["{branch}"]
  workflow_dispatch:

permissions:
  contents: read
  pages: write
  id-token: write

concurrency:
  group: "pages"
  cancel-in-progress: false

jobs:
  deploy:
    environment:
      name: github-pages
      url: ${{{{ steps.deployment.outputs.page_url }}}}
    runs-on: ubuntu-latest
    steps:
      - name: Checkout
        uses: actions/checkout@v4
      - name: Setup Pages
        uses: actions/configure-pages@v5
      - name: Upload artifact
        uses: actions/upload-pages-artifact@v3
        with:
          path: '.'
      - name: Deploy to GitHub Pages
        id: deployment
        uses: actions/deploy-pages@v4
"""


def deploy_url(repo: str | None) -> Optional[str]:
    """``owner/name`` -> ``https://owner.github.io/name/``."""

    if not repo or "/" not in repo:
        return None
    owner, name = repo.strip("/").split("/", 1)
    return f"https://{owner}.github.io/{name}/"


@dataclass(frozen=True)
class PublishResult:
    committed: bool
    commit: Optional[str] = None


Runner = Callable[..., subprocess.CompletedProcess]


class GitPublisher:
    """Copy built files into a git checkout, commit and push."""

    def __init__(
        self,
        repo_dir: str | Path,
        branch: str = "main",
        remote: str = "origin",
        *,
        runner: Runner = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repo_dir = Path(repo_dir)
        self.branch = branch
        self.remote = remote
        self._run = runner
        self._sleep = sleep

    def git(self, *args: str) -> str:
        try:
            completed = self._run(
                ["git", *args],
                cwd=str(self.repo_dir),
                capture_output=True,
                text=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            stderr = getattr(exc, "stderr", "") or ""
            raise BuildError(f"git {' '.join(args)} failed: {stderr.strip() or exc}") from exc
        return (completed.stdout or "").strip()

    def write_files(self, source_dir: str | Path, files: Iterable[str]) -> List[str]:
        source = Path(source_dir)
        written: List[str] = []
        for name in files:
            target = self.repo_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source / name, target)
            written.append(name)
        logger.info("Wrote %d files to %s", len(written), self.repo_dir)
        return written

    def ensure_workflow(self) -> bool:
        path = self.repo_dir / ".github" / "workflows" / "static.yml"
        if path.exists():
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(PAGES_WORKFLOW.format(branch=self.branch), encoding="utf-8")
        logger.info("Created GitHub Actions workflow")
        return True

    def set_cname(self, domain: str | None) -> bool:
        if not domain or "github.io" in domain:
            return False
        host = domain.split("://", 1)[-1].strip("/")
        (self.repo_dir / "CNAME").write_text(host, encoding="utf-8")
        logger.info("Set CNAME to %s", host)
        return True

    def commit_and_push(self, message: str, files: Sequence[str] | None = None) -> PublishResult:
        if files:
            self.git("add", "--", *files)
        else:
            self.git("add", "-A")

        if not self.git("status", "--porcelain"):
            logger.info("No changes to commit")
            return PublishResult(committed=False)

        self.git("commit", "-m", message)
        commit = self.git("rev-parse", "HEAD")
        logger.info("Committed %s: %s", commit[:12], message)
        self._push_with_retry()
        return PublishResult(committed=True, commit=commit)

    def _push_with_retry(self) -> None:
        attempts = len(PUSH_RETRY_DELAYS) + 1
        for attempt in range(attempts):
            try:
                self.git("push", "--set-upstream", self.remote, self.branch)
            except BuildError as exc:
                if attempt == attempts - 1:
                    raise BuildError(f"Push failed after {attempt} retries: {exc}") from exc
                delay = PUSH_RETRY_DELAYS[attempt]
                logger.warning("Push failed, retrying in %ss (attempt %d/%d)", delay, attempt + 1, attempts - 1)
                self._sleep(delay)
            else:
                logger.info("Pushed to %s/%s", self.remote, self.branch)
                return

    def publish(self, source_dir: str | Path, files: Sequence[str], message: str, domain: str | None = None) -> PublishResult:
        self.write_files(source_dir, files)
        extra = []
        if self.ensure_workflow():
            extra.append(".github/workflows/static.yml")
        if self.set_cname(domain):
            extra.append("CNAME")
        return self.commit_and_push(message, [*files, *extra])
