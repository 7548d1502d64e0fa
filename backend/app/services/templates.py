"""
Preview templates.

A publish may carry assets for one or more named templates (small example
projects that install the freshly published packages). Each template is
rendered into a self-submitting StackBlitz form, stored, and exposed under
``/template/{key}``. Template URLs do not depend on the commit or the cursor:
every publish produces new keys.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import settings
from app.services.storage import AsyncReadable, BlobStore, UploadJob

logger = logging.getLogger(__name__)

# Setup Jinja2 environment
current_dir = os.path.dirname(os.path.abspath(__file__))
template_dir = os.path.join(current_dir, "../templates/preview")
env = Environment(loader=FileSystemLoader(template_dir), autoescape=select_autoescape(["html"]))

STACKBLITZ_RUN_URL = "https://stackblitz.com/run"
_ENTRY_FILES = ("README.md", "package.json")


def _entry_file(files: Dict[str, str]) -> Optional[str]:
    for name in _ENTRY_FILES:
        if name in files:
            return name
    return min(files) if files else None


def render_template(template: str, files: Dict[str, str]) -> str:
    """Render the HTML bundle for one template from its asset map."""
    action = STACKBLITZ_RUN_URL
    entry = _entry_file(files)
    if entry:
        action = f"{STACKBLITZ_RUN_URL}?file={quote(entry)}"
    return env.get_template("stackblitz.html").render(
        template=template,
        files=files,
        action=action,
        project_name=settings.PROJECT_NAME,
    )


def template_url(origin: str, key: str) -> str:
    return f"{origin}/template/{key}"


@dataclass
class TemplateAsset:
    """One ``template:<template>:<asset>`` form field."""

    template: str
    name: str
    content: Union[str, AsyncReadable]
    content_type: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return not isinstance(self.content, str)


@dataclass
class TemplatePlan:
    files: Dict[str, Dict[str, str]] = field(default_factory=dict)
    uploads: List[UploadJob] = field(default_factory=list)


class TemplateAssembler:
    def __init__(
        self,
        store: BlobStore,
        origin: str,
        renderer: Callable[[str, Dict[str, str]], str] = render_template,
    ):
        self.store = store
        self.origin = origin
        self.renderer = renderer

    def prepare(self, assets: List[TemplateAsset]) -> TemplatePlan:
        """
        Group assets by template.

        Inline assets are kept verbatim. Binary assets get a fresh key and are
        replaced by their absolute URL; the returned plan carries the upload
        jobs so they can run alongside the package uploads.
        """
        plan = TemplatePlan()
        for asset in assets:
            files = plan.files.setdefault(asset.template, {})
            if asset.is_binary:
                key = str(uuid.uuid4())
                files[asset.name] = template_url(self.origin, key)
                plan.uploads.append(
                    UploadJob(
                        name=f"{asset.template}/{asset.name}",
                        store=self.store,
                        key=key,
                        source=asset.content,
                        content_type=asset.content_type,
                    )
                )
            else:
                files[asset.name] = asset.content
        return plan

    async def render_all(self, plan: TemplatePlan) -> Dict[str, str]:
        """Render and store every template. Returns template name -> bundle URL."""
        urls: Dict[str, str] = {}
        for template, files in plan.files.items():
            html = self.renderer(template, files)
            key = str(uuid.uuid4())
            await self.store.put_bytes(key, html.encode("utf-8"), content_type="text/html; charset=utf-8")
            urls[template] = template_url(self.origin, key)
            logger.info(f"Rendered template '{template}' with {len(files)} assets")
        return urls
