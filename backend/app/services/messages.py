"""
Publish URLs and the markdown posted to GitHub.

Pure functions: everything here is computed once per publish, before any
GitHub API call, and shared between the check run and the PR comment.
"""

from typing import Dict, List, Optional

from app.core.constants import ABBREVIATED_SHA_LENGTH, INSTALL_COMMANDS, RUN_COMMANDS
from app.models.publish import PackageManager, UrlBase
from app.models.workflow import Claim


def abbreviate_sha(sha: str) -> str:
    return sha[:ABBREVIATED_SHA_LENGTH]


def publish_url(base: UrlBase, origin: str, package: str, claim: Claim, compact: bool) -> str:
    """
    Installable URL for one package.

    ``sha`` URLs pin the commit and never change. ``ref`` URLs use the branch
    or pull request number and follow the cursor to the latest publish.
    """
    tag = abbreviate_sha(claim.sha) if base == UrlBase.SHA else claim.ref
    if compact:
        return f"{origin}/{package}@{tag}"
    return f"{origin}/{claim.owner}/{claim.repo}/{package}@{tag}"


def install_command(url: str, package_manager: PackageManager, use_bin: bool) -> str:
    commands = RUN_COMMANDS if use_bin else INSTALL_COMMANDS
    return f"{commands[package_manager.value]} {url}"


def commit_url(claim: Claim) -> str:
    return f"https://github.com/{claim.owner}/{claim.repo}/commit/{claim.sha}"


def _template_lines(templates: Dict[str, str]) -> List[str]:
    if not templates:
        return []
    lines = ["### Templates", ""]
    for name, url in templates.items():
        lines.append(f"- [{name}]({url})")
    lines.append("")
    return lines


def _package_lines(
    base: UrlBase,
    origin: str,
    packages: List[str],
    claim: Claim,
    compact: bool,
    package_manager: PackageManager,
    use_bin: bool,
) -> List[str]:
    lines: List[str] = []
    for package in packages:
        url = publish_url(base, origin, package, claim, compact)
        lines.extend(
            [
                f"**{package}**",
                "",
                "```",
                install_command(url, package_manager, use_bin),
                "```",
                "",
            ]
        )
    return lines


def commit_publish_message(
    origin: str,
    templates: Dict[str, str],
    packages: List[str],
    claim: Claim,
    compact: bool,
    package_manager: PackageManager,
    use_bin: bool,
) -> str:
    """Check run text: templates and sha-pinned install commands."""
    lines = _template_lines(templates)
    lines.extend(_package_lines(UrlBase.SHA, origin, packages, claim, compact, package_manager, use_bin))
    return "\n".join(lines).rstrip() + "\n"


def pull_request_publish_message(
    origin: str,
    templates: Dict[str, str],
    packages: List[str],
    claim: Claim,
    compact: bool,
    only_templates: bool,
    check_run_url: Optional[str],
    package_manager: PackageManager,
    base: UrlBase,
    use_bin: bool,
) -> str:
    """
    Body of the bot comment on the pull request.

    Args:
        base: ``ref`` when the comment is kept up to date across publishes,
            ``sha`` when every publish posts its own comment.
        only_templates: Skip the per-package install commands.
    """
    lines = _template_lines(templates)
    if not only_templates:
        lines.extend(_package_lines(base, origin, packages, claim, compact, package_manager, use_bin))

    lines.append(
        f"_commit: <a href=\"{commit_url(claim)}\"><code>{abbreviate_sha(claim.sha)}</code></a>_"
    )
    if check_run_url:
        lines.append("")
        lines.append(f"[View check run]({check_run_url})")
    return "\n".join(lines) + "\n"
