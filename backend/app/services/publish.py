"""
Publish orchestration.

Sequences one publish request end to end:

1. resolve the claim for the token (404 when unknown)
2. payload size policy for non-whitelisted repositories (413)
3. parse the multipart body (400 when it carries no packages)
4. re-check the claim, which a concurrent publish may have consumed (401)
5. upload packages and binary template assets concurrently, wait for all
6. render and store the template bundles
7. compare-and-set the cursor for the ref
8. consume the claim
9. compute the installable URLs
10. report to GitHub (failures are logged, never raised)

The claim is consumed only after every write succeeded, so a failed publish
can be retried with the same token. Uploads are keyed by commit and package
name, so a retry overwrites whatever the failed attempt left behind.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from app.core.config import settings
from app.core.constants import WHITELIST_HELP_URL
from app.core.exceptions import AuthorizationError, ClientError, PolicyError, PublishError
from app.core.metrics import publish_packages_total, publish_requests_total
from app.models.cursor import Cursor
from app.models.publish import UrlBase
from app.models.workflow import Claim
from app.repositories.cursors import CursorRepository
from app.repositories.workflows import WorkflowRepository
from app.schemas.publish import PublishHeaders
from app.services.messages import publish_url
from app.services.status_reporter import PublishReport, ReportOutcome, StatusReporter
from app.services.storage import AsyncReadable, BlobStore, UploadCoordinator, UploadJob
from app.services.templates import TemplateAsset, TemplateAssembler
from app.services.whitelist import is_whitelisted

logger = logging.getLogger(__name__)

PACKAGE_CONTENT_TYPE = "application/tar+gzip"


def package_key(owner: str, repo: str, sha: str, package: str) -> str:
    return f"{owner}:{repo}:{sha}:{package}"


@dataclass
class PackageUpload:
    name: str
    source: AsyncReadable


@dataclass
class PublishForm:
    """Parsed multipart body, in submission order."""

    packages: List[PackageUpload] = field(default_factory=list)
    assets: List[TemplateAsset] = field(default_factory=list)


FormLoader = Callable[[], Awaitable[PublishForm]]


@dataclass
class PublishResult:
    claim: Claim
    urls: List[str]
    templates: Dict[str, str]
    cursor_updated: bool
    report: ReportOutcome


class PublishService:
    def __init__(
        self,
        workflows: WorkflowRepository,
        cursors: CursorRepository,
        packages: BlobStore,
        templates: BlobStore,
        reporter: StatusReporter,
        whitelist_check: Callable[[str, str], Awaitable[bool]] = is_whitelisted,
        uploader: Optional[UploadCoordinator] = None,
        max_payload_bytes: Optional[int] = None,
    ):
        self.workflows = workflows
        self.cursors = cursors
        self.packages = packages
        self.templates = templates
        self.reporter = reporter
        self.whitelist_check = whitelist_check
        self.uploader = uploader or UploadCoordinator()
        self.max_payload_bytes = max_payload_bytes if max_payload_bytes is not None else settings.MAX_PAYLOAD_BYTES

    async def authorize(self, headers: PublishHeaders) -> Claim:
        claim = await self.workflows.resolve(headers.key)
        if claim is None:
            raise AuthorizationError(f"There is no workflow defined for {headers.key}", status_code=404)
        return claim

    async def enforce_size_policy(self, claim: Claim, content_length: Optional[int]) -> None:
        """Reject oversized payloads from non-whitelisted repositories before the body is read."""
        if content_length is None or content_length <= self.max_payload_bytes:
            return
        if await self.whitelist_check(claim.owner, claim.repo):
            return
        limit_mb = self.max_payload_bytes // (1024 * 1024)
        raise PolicyError(
            f"Max payload limit is {limit_mb}mb! Feel free to apply for the whitelist: {WHITELIST_HELP_URL}"
        )

    async def publish(
        self,
        headers: PublishHeaders,
        content_length: Optional[int],
        load_form: FormLoader,
        origin: str,
    ) -> PublishResult:
        try:
            result = await self._publish(headers, content_length, load_form, origin)
        except PublishError as e:
            publish_requests_total.labels(status=type(e).__name__).inc()
            raise
        except Exception:
            publish_requests_total.labels(status="error").inc()
            raise
        publish_requests_total.labels(status="success").inc()
        return result

    async def _publish(
        self,
        headers: PublishHeaders,
        content_length: Optional[int],
        load_form: FormLoader,
        origin: str,
    ) -> PublishResult:
        claim = await self.authorize(headers)
        await self.enforce_size_policy(claim, content_length)

        form = await load_form()
        if not form.packages:
            raise ClientError("No packages")

        missing = [p.name for p in form.packages if not headers.shasums.get(p.name)]
        if missing:
            raise ClientError(f"Missing checksum in sb-shasums for: {', '.join(missing)}")

        if not await self.workflows.is_active(headers.key):
            raise AuthorizationError(
                "Try publishing from a github workflow! Also make sure the GitHub app is installed on the repo"
            )

        assembler = TemplateAssembler(self.templates, origin)
        plan = assembler.prepare(form.assets)

        jobs = [
            UploadJob(
                name=package.name,
                store=self.packages,
                key=package_key(claim.owner, claim.repo, claim.sha, package.name),
                source=package.source,
                checksum=headers.shasums[package.name],
                content_type=PACKAGE_CONTENT_TYPE,
            )
            for package in form.packages
        ]
        await self.uploader.upload_all(jobs + plan.uploads)
        publish_packages_total.inc(len(form.packages))

        template_urls = await assembler.render_all(plan)

        cursor_updated = await self.cursors.compare_and_set(
            claim.owner,
            claim.repo,
            claim.ref,
            Cursor(sha=claim.sha, run_number=headers.run_id),
        )

        await self.workflows.consume(headers.key)

        names = [package.name for package in form.packages]
        urls = [publish_url(UrlBase.SHA, origin, name, claim, headers.compact) for name in names]
        logger.info(f"Published {len(names)} package(s) for {claim.full_name}@{claim.sha[:7]} (run {headers.run_id})")

        # The publish is durable from here on; reporting cannot change the outcome
        outcome = await self.reporter.report(
            PublishReport(
                claim=claim,
                origin=origin,
                packages=names,
                templates=template_urls,
                comment_mode=headers.comment,
                compact=headers.compact,
                only_templates=headers.only_templates,
                package_manager=headers.package_manager,
                use_bin=headers.use_bin,
            )
        )

        return PublishResult(
            claim=claim,
            urls=urls,
            templates=template_urls,
            cursor_updated=cursor_updated,
            report=outcome,
        )
