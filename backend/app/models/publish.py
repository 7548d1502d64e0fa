from enum import Enum


class CommentMode(str, Enum):
    """How the pull request comment is reconciled across publishes."""

    UPDATE = "update"
    CREATE = "create"
    OFF = "off"


class PackageManager(str, Enum):
    NPM = "npm"
    PNPM = "pnpm"
    YARN = "yarn"
    BUN = "bun"


class UrlBase(str, Enum):
    """Which identifier goes after the ``@`` in a published URL."""

    SHA = "sha"
    REF = "ref"
