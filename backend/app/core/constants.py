"""
Shared Constants

Centralized constants used across the application to ensure consistency.
"""

from typing import Dict

# Name of the check run attached to every published commit
CHECK_RUN_NAME = "Continuous Releases"

# Request headers sent by the CI action
HEADER_RUN_ID = "sb-run-id"
HEADER_KEY = "sb-key"
HEADER_SHASUMS = "sb-shasums"
HEADER_COMMENT = "sb-comment"
HEADER_COMPACT = "sb-compact"
HEADER_BIN = "sb-bin"
HEADER_PACKAGE_MANAGER = "sb-package-manager"
HEADER_ONLY_TEMPLATES = "sb-only-templates"

# Multipart form key prefixes
PACKAGE_FIELD_PREFIX = "package:"
TEMPLATE_FIELD_PREFIX = "template:"

# GridFS bucket names
PACKAGES_BUCKET = "packages"
TEMPLATES_BUCKET = "templates"

# Streaming chunk size for uploads and downloads (GridFS default chunk size)
UPLOAD_CHUNK_SIZE = 255 * 1024

ABBREVIATED_SHA_LENGTH = 7

WHITELIST_HELP_URL = "https://github.com/stackblitz-labs/pkg.pr.new/blob/main/.whitelist"

# Install/run commands per package manager
INSTALL_COMMANDS: Dict[str, str] = {
    "npm": "npm i",
    "pnpm": "pnpm add",
    "yarn": "yarn add",
    "bun": "bun add",
}

RUN_COMMANDS: Dict[str, str] = {
    "npm": "npx",
    "pnpm": "pnpm dlx",
    "yarn": "yarn dlx",
    "bun": "bunx",
}

# GitHub API
GITHUB_API_TIMEOUT = 10.0
GITHUB_COMMENTS_PAGE_SIZE = 100
# Installation tokens live one hour, refresh a few minutes early
GITHUB_INSTALLATION_TOKEN_TTL = 50 * 60
GITHUB_APP_JWT_TTL = 9 * 60

WHITELIST_CACHE_TTL = 10 * 60
