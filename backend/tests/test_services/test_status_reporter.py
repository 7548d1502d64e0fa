"""Tests for check run and pull request comment reconciliation."""

import asyncio
from unittest.mock import AsyncMock

from app.models.publish import CommentMode
from app.services.status_reporter import PublishReport, StatusReporter
from tests.mocks.github import FakeInstallation, make_check_run, make_comment
from tests.mocks.publish import make_claim

ORIGIN = "https://pkg.example.com"


def _reporter(installation):
    return StatusReporter(AsyncMock(return_value=installation))


def _report(claim=None, **overrides):
    kwargs = dict(
        claim=claim or make_claim(ref="42"),
        origin=ORIGIN,
        packages=["pkg"],
        templates={},
    )
    kwargs.update(overrides)
    return PublishReport(**kwargs)


class TestCheckRun:
    def test_creates_when_missing(self):
        installation = FakeInstallation()
        outcome = asyncio.run(_reporter(installation).report(_report()))

        assert outcome.check_run_created is True
        assert len(installation.created_check_runs) == 1
        created = installation.created_check_runs[0]
        assert created["title"] == "Successful"
        assert created["summary"] == "Published successfully."
        assert created["conclusion"] == "success"
        assert "pkg@abc1234" in created["text"]

    def test_reuses_existing(self):
        existing = make_check_run(id=9, html_url="https://github.com/acme/widgets/runs/9")
        installation = FakeInstallation(check_runs=[existing])

        outcome = asyncio.run(_reporter(installation).report(_report()))

        assert outcome.check_run_created is False
        assert outcome.check_run_url == "https://github.com/acme/widgets/runs/9"
        assert installation.created_check_runs == []

    def test_failure_does_not_stop_comment(self):
        installation = FakeInstallation()
        installation.fail_on.add("list_check_runs")

        outcome = asyncio.run(_reporter(installation).report(_report()))

        assert [e.track for e in outcome.errors] == ["check_run"]
        assert outcome.comment_action == "created"
        assert "View check run" not in installation.created_comments[0]["body"]


class TestCommentGating:
    def test_branch_gets_no_comment(self):
        installation = FakeInstallation()
        outcome = asyncio.run(_reporter(installation).report(_report(claim=make_claim(ref="main"))))

        assert outcome.comment_action is None
        assert installation.created_comments == []
        assert installation.pages_fetched == 0
        assert outcome.check_run_created is True

    def test_off_mode(self):
        installation = FakeInstallation()
        outcome = asyncio.run(_reporter(installation).report(_report(comment_mode=CommentMode.OFF)))

        assert outcome.comment_action is None
        assert installation.pages_fetched == 0


class TestUpdateMode:
    def test_updates_first_app_comment(self):
        installation = FakeInstallation(
            comment_pages=[[make_comment(1), make_comment(2, app_id=7), make_comment(3, app_id=4242)]]
        )

        outcome = asyncio.run(_reporter(installation).report(_report()))

        assert outcome.comment_action == "updated"
        assert installation.updated_comments[0]["comment_id"] == 3
        assert installation.created_comments == []
        # Updated comments use ref-based URLs
        assert "pkg@42" in installation.updated_comments[0]["body"]

    def test_stops_paging_on_match(self):
        installation = FakeInstallation(
            comment_pages=[
                [make_comment(1)],
                [make_comment(2, app_id=4242)],
                [make_comment(3)],
            ]
        )

        asyncio.run(_reporter(installation).report(_report()))

        assert installation.pages_fetched == 2

    def test_creates_when_no_app_comment(self):
        installation = FakeInstallation(comment_pages=[[make_comment(1)], [make_comment(2, app_id=7)]])

        outcome = asyncio.run(_reporter(installation).report(_report()))

        assert outcome.comment_action == "created"
        assert installation.pages_fetched == 2
        assert "pkg@42" in installation.created_comments[0]["body"]


class TestCreateMode:
    def test_always_posts_sha_comment(self):
        installation = FakeInstallation(comment_pages=[[make_comment(3, app_id=4242)]])

        outcome = asyncio.run(_reporter(installation).report(_report(comment_mode=CommentMode.CREATE)))

        assert outcome.comment_action == "created"
        assert installation.updated_comments == []
        assert installation.pages_fetched == 0
        assert "pkg@abc1234" in installation.created_comments[0]["body"]


class TestFailuresAreContained:
    def test_comment_failure_is_logged_with_permissions(self):
        installation = FakeInstallation()
        installation.fail_on.add("create_comment")

        outcome = asyncio.run(_reporter(installation).report(_report()))

        assert [e.track for e in outcome.errors] == ["comment"]
        assert installation.permission_lookups == 1

    def test_permission_lookup_failure_is_swallowed(self):
        installation = FakeInstallation()
        installation.fail_on.update({"create_comment", "get_installation_permissions"})

        outcome = asyncio.run(_reporter(installation).report(_report()))

        assert [e.track for e in outcome.errors] == ["comment"]

    def test_installation_lookup_failure(self):
        reporter = StatusReporter(AsyncMock(side_effect=RuntimeError("app not installed")))

        outcome = asyncio.run(reporter.report(_report()))

        assert [e.track for e in outcome.errors] == ["installation"]
        assert outcome.check_run_url is None
