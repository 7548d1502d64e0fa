"""
Status reporting for published commits.

Reconciles two independent tracks against GitHub after the artifacts are
durably stored:

- the check run on the commit, created once per commit and reused after that
- the bot comment on the pull request, edited in place or posted anew
  depending on the comment mode

Nothing in here may fail the publish: every error is logged and returned in
the outcome instead of raised.
"""

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from app.core.constants import CHECK_RUN_NAME
from app.core.exceptions import ReportingError
from app.core.metrics import status_reports_failed_total
from app.models.github_api import IssueComment
from app.models.publish import CommentMode, PackageManager, UrlBase
from app.models.workflow import Claim
from app.services.github import GitHubInstallation
from app.services.messages import commit_publish_message, pull_request_publish_message

logger = logging.getLogger(__name__)

InstallationFactory = Callable[[str, str], Awaitable[GitHubInstallation]]


@dataclass
class PublishReport:
    """Everything the reporter needs to describe one publish."""

    claim: Claim
    origin: str
    packages: List[str]
    templates: Dict[str, str]
    comment_mode: CommentMode = CommentMode.UPDATE
    compact: bool = False
    only_templates: bool = False
    package_manager: PackageManager = PackageManager.NPM
    use_bin: bool = False


@dataclass
class ReportOutcome:
    check_run_url: Optional[str] = None
    check_run_created: bool = False
    comment_action: Optional[str] = None
    errors: List[ReportingError] = field(default_factory=list)


class StatusReporter:
    def __init__(self, installation_factory: InstallationFactory):
        self.installation_factory = installation_factory

    async def report(self, report: PublishReport) -> ReportOutcome:
        """Reconcile the check run and the pull request comment for ``report``."""
        claim = report.claim
        outcome = ReportOutcome()

        # Computed once, before any network call
        check_run_text = commit_publish_message(
            report.origin,
            report.templates,
            report.packages,
            claim,
            report.compact,
            report.package_manager,
            report.use_bin,
        )

        try:
            installation = await self.installation_factory(claim.owner, claim.repo)
        except Exception as e:
            self._record_failure(outcome, "installation", e)
            logger.error(f"Cannot report publish of {claim.full_name}@{claim.sha[:7]}: {e}")
            return outcome

        try:
            await self._reconcile_check_run(installation, claim, check_run_text, outcome)
        except Exception as e:
            self._record_failure(outcome, "check_run", e)
            logger.error(f"Failed to create check run on {claim.full_name}@{claim.sha[:7]}: {e}")

        if claim.is_pull_request and report.comment_mode != CommentMode.OFF:
            try:
                await self._reconcile_comment(installation, report, outcome)
            except Exception as e:
                self._record_failure(outcome, "comment", e)
                permissions = await self._permissions_for_logging(installation)
                logger.error(
                    f"Failed to create/update comment on {claim.full_name}#{claim.ref}: {e} "
                    f"(installation permissions: {permissions})"
                )

        return outcome

    def _record_failure(self, outcome: ReportOutcome, track: str, cause: Exception) -> None:
        status_reports_failed_total.labels(track=track).inc()
        outcome.errors.append(ReportingError(track, cause))

    async def _reconcile_check_run(
        self,
        installation: GitHubInstallation,
        claim: Claim,
        text: str,
        outcome: ReportOutcome,
    ) -> None:
        existing = await installation.list_check_runs(claim.sha, CHECK_RUN_NAME)
        if existing:
            # Another package of the same commit already reported; leave it as is
            outcome.check_run_url = existing[0].html_url
            return

        check_run = await installation.create_check_run(
            claim.sha,
            name=CHECK_RUN_NAME,
            title="Successful",
            summary="Published successfully.",
            text=text,
            conclusion="success",
        )
        outcome.check_run_url = check_run.html_url
        outcome.check_run_created = True
        logger.info(f"Created check run on {claim.full_name}@{claim.sha[:7]}")

    async def find_app_comment(
        self, installation: GitHubInstallation, issue_number: int
    ) -> Optional[IssueComment]:
        """First comment on the pull request authored by this app, if any.

        Stops fetching pages as soon as one is found.
        """
        async with aclosing(installation.iter_comment_pages(issue_number)) as pages:
            async for page in pages:
                for comment in page:
                    if comment.authored_by_app(installation.app_id):
                        return comment
        return None

    async def _reconcile_comment(
        self,
        installation: GitHubInstallation,
        report: PublishReport,
        outcome: ReportOutcome,
    ) -> None:
        claim = report.claim
        issue_number = int(claim.ref)

        previous = None
        if report.comment_mode == CommentMode.UPDATE:
            previous = await self.find_app_comment(installation, issue_number)

        base = UrlBase.REF if report.comment_mode == CommentMode.UPDATE else UrlBase.SHA
        body = pull_request_publish_message(
            report.origin,
            report.templates,
            report.packages,
            claim,
            report.compact,
            report.only_templates,
            outcome.check_run_url,
            report.package_manager,
            base,
            report.use_bin,
        )

        if previous is not None:
            await installation.update_comment(previous.id, body)
            outcome.comment_action = "updated"
            logger.info(f"Updated comment {previous.id} on {claim.full_name}#{issue_number}")
        else:
            await installation.create_comment(issue_number, body)
            outcome.comment_action = "created"
            logger.info(f"Posted comment on {claim.full_name}#{issue_number}")

    async def _permissions_for_logging(self, installation: GitHubInstallation) -> Optional[Dict[str, str]]:
        try:
            return await installation.get_installation_permissions()
        except Exception as e:
            logger.warning(f"Could not fetch installation permissions: {e}")
            return None
