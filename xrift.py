"""
XRift CLI - publish worlds to XRift

Copyright 2026 UAA Software

Permission is hereby granted, free of charge, to any person obtaining a copy of
this software and associated documentation files (the “Software”), to deal in
the Software without restriction, including without limitation the rights to
use, copy, modify, merge, publish, distribute, sublicense, and/or sell copies of
the Software, and to permit persons to whom the Software is furnished to do so,
subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED “AS IS”, WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY, FITNESS
FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR
COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER
IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN
CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
"""

import argparse
import fnmatch
import hashlib
import http.client
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from enum import Enum
import http.server
import json
import logging
import os
import re
import secrets
import subprocess
import sys
import tempfile
import threading
import time
import tomllib
import urllib.error
import urllib.parse
import urllib.request
import webbrowser
from pathlib import Path
from typing import Any, Callable, NamedTuple

from filelock import FileLock as _FileLock
from filelock import Timeout as _LockTimeout


# Module-level logger
logger = logging.getLogger("xrift")


VERSION = "0.1.0"
USER_AGENT = f"xrift-cli/{VERSION}"

DEFAULT_API_URL = "https://api.xrift.net"
DEFAULT_FRONTEND_URL = "https://app.xrift.net"

AUTH_LOGIN_PATH = "/cli-login"
AUTH_VERIFY_PATH = "/api/auth/verify-cli-token"
AUTH_TOKEN_EXCHANGE_PATH = "/api/auth/cli-token"
WORLDS_PATH = "/api/worlds"

CALLBACK_PORT = 3000
CALLBACK_PATH = "/callback"
CALLBACK_READ_TIMEOUT = 10.0
AUTH_TIMEOUT_SECONDS = 5 * 60

AUTH_CONFIG_FILE = "config.json"
SETTINGS_FILE = "settings.toml"
LOG_FILE = "xrift.log"
PROJECT_CONFIG_FILE = "xrift.json"
PROJECT_META_DIR = ".xrift"
WORLD_META_FILE = "world.json"

API_TIMEOUT = 30.0
UPLOAD_TIMEOUT = 300.0
DEFAULT_UPLOAD_JOBS = 4
HASH_CHUNK_SIZE = 65536
CONTENT_HASH_LENGTH = 12

PROJECT_NAME_PATTERN = re.compile(r"[a-z0-9-]+")

MIME_TYPES = {
    ".glb": "model/gltf-binary",
    ".gltf": "model/gltf+json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ktx2": "image/ktx2",
    ".json": "application/json",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".wasm": "application/wasm",
    ".html": "text/html",
    ".css": "text/css",
    ".txt": "text/plain",
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".wav": "audio/wav",
    ".mp4": "video/mp4",
    ".bin": "application/octet-stream",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


# =============================================================================
# Exceptions
# =============================================================================


class XRiftError(Exception):
    """Base error for every failure the CLI reports to the user."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.hint = hint


class ConfigMissingError(XRiftError):
    """Project configuration file does not exist."""


class ConfigInvalidError(XRiftError):
    """Configuration exists but is malformed or lacks a required field."""


class PathNotFoundError(XRiftError):
    """A configured path does not exist."""


class PathNotADirectoryError(XRiftError):
    """A configured path exists but is not a directory."""


class AuthRequiredError(XRiftError):
    """No stored credential."""


class AuthInvalidError(XRiftError):
    """Credential or callback rejected."""


class AuthStateMismatchError(AuthInvalidError):
    """Callback state parameter does not match the login attempt."""


class AuthTimeoutError(XRiftError):
    """No login callback arrived before the deadline."""


class TransportError(XRiftError):
    """HTTP failure talking to the XRift service or a signed URL."""

    def __init__(
        self,
        message: str,
        status: int = 0,
        url: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(message, hint=hint)
        self.status = status
        self.url = url


class BuildFailedError(XRiftError):
    """Configured build command exited non-zero."""

    def __init__(self, command: str, returncode: int):
        super().__init__(
            f"Build command failed with exit code {returncode}: {command}"
        )
        self.command = command
        self.returncode = returncode


class TransferFailedError(XRiftError):
    """Uploading a file to its signed URL failed."""

    def __init__(self, remote_path: str, cause: Exception):
        super().__init__(f"Failed to upload {remote_path}: {cause}")
        self.remote_path = remote_path
        self.cause = cause


class UploadIncompleteError(XRiftError):
    """Files were uploaded but the service never confirmed the upload set."""

    def __init__(self, world_id: str, cause: Exception):
        super().__init__(
            f"Files were uploaded but completion could not be confirmed for world {world_id}: {cause}",
            hint="Run `xrift upload world` again",
        )
        self.world_id = world_id
        self.cause = cause


# =============================================================================
# Output Helpers
# =============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"


def use_color() -> bool:
    """Check if color output should be used.

    Colors are disabled if:
    - NO_COLOR environment variable is set
    - CI environment variable is set
    - stdout is not a TTY

    Returns:
        True if color should be used
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CI"):
        return False
    if not sys.stdout.isatty():
        return False
    return True


def colorize(text: str, color: str, force: bool = False) -> str:
    """Wrap text in ANSI color codes if appropriate.

    Args:
        text: Text to colorize
        color: Color name (e.g., 'RED', 'GREEN')
        force: Force color even if normally disabled

    Returns:
        Colorized text or plain text
    """
    if not force and not use_color():
        return text
    color_code = getattr(Colors, color.upper(), "")
    if color_code:
        return f"{color_code}{text}{Colors.RESET}"
    return text


def format_bytes(size: int) -> str:
    """Format byte size as human-readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024:
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}PB"


def die(message: str, hint: str | None = None, exit_code: int = 1) -> int:
    """Print error message and return exit code with optional hint.

    Args:
        message: Error message to display
        hint: Optional remediation hint
        exit_code: Exit code to return

    Returns:
        Exit code (for testing purposes)
    """
    error_msg = f"Error: {message}"
    if use_color():
        error_msg = f"{Colors.RED}{error_msg}{Colors.RESET}"
    print(error_msg, file=sys.stderr)

    if hint:
        hint_msg = f"Hint: {hint}"
        if use_color():
            hint_msg = f"{Colors.YELLOW}{hint_msg}{Colors.RESET}"
        print(hint_msg, file=sys.stderr)

    logger.error(f"Exited with code {exit_code}: {message}")
    if hint:
        logger.error(f"Hint: {hint}")

    return exit_code


# =============================================================================
# Logging
# =============================================================================


def setup_logging(
    verbosity: int = 0, log_file: bool = True, log_dir: Path | None = None
) -> None:
    """Set up logging with console and file handlers.

    Args:
        verbosity: 0=INFO, 1=DEBUG, 2=DEBUG with logger names
        log_file: Whether to write to log file
        log_dir: Directory for xrift.log (defaults to the user config dir)
    """
    if verbosity >= 2:
        level = logging.DEBUG
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    elif verbosity >= 1:
        level = logging.DEBUG
        fmt = "%(asctime)s - %(levelname)s - %(message)s"
    else:
        level = logging.INFO
        fmt = "%(asctime)s - %(levelname)s - %(message)s"

    # Clear existing handlers
    logger.handlers = []
    logger.setLevel(level)

    # Console handler (only warnings and above for non-verbose)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING if verbosity == 0 else level)
    console_handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(console_handler)

    if log_file:
        log_dir = log_dir or get_user_config_dir()
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_dir / LOG_FILE, mode="a")
        file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

        logger.debug(f"Logging initialized (verbosity={verbosity})")


# =============================================================================
# Execution Context
# =============================================================================


def get_user_config_dir() -> Path:
    """Return ~/.xrift/, or XRIFT_CONFIG_DIR when set."""
    env_override = os.environ.get("XRIFT_CONFIG_DIR")
    if env_override:
        return Path(env_override)
    return Path.home() / ".xrift"


def load_user_settings(config_dir: Path) -> dict[str, Any]:
    """Load optional settings.toml from the user config dir."""
    settings_path = config_dir / SETTINGS_FILE
    if not settings_path.exists():
        return {}

    try:
        with settings_path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigInvalidError(f"Invalid {settings_path}: {e}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def prompt_input(message: str, default: str | None = None) -> str:
    """Ask on stdin, returning default for an empty answer."""
    suffix = f" [{default}]" if default else ""
    answer = input(f"{message}{suffix}: ").strip()
    return answer or (default or "")


class ExecutionContext:
    """Per-invocation settings shared by every command.

    Everything that would otherwise be module-global (config location, service
    URLs, verbosity, the clock, the browser launcher) lives here so that each
    test can build an isolated context.
    """

    def __init__(
        self,
        config_dir: Path,
        *,
        api_url: str = DEFAULT_API_URL,
        frontend_url: str = DEFAULT_FRONTEND_URL,
        callback_port: int = CALLBACK_PORT,
        verbosity: int = 0,
        jobs: int = DEFAULT_UPLOAD_JOBS,
        interactive: bool = False,
        clock: Callable[[], float] | None = None,
        now: Callable[[], datetime] | None = None,
        open_browser: Callable[[str], bool] | None = None,
        prompt: Callable[[str, str | None], str] | None = None,
    ):
        self.config_dir = Path(config_dir)
        self.api_url = api_url.rstrip("/")
        self.frontend_url = frontend_url.rstrip("/")
        self.callback_port = callback_port
        self.verbosity = verbosity
        self.jobs = max(1, jobs)
        self.interactive = interactive
        self.clock = clock or time.monotonic
        self.now = now or utc_now
        self.open_browser = open_browser or webbrowser.open
        self.prompt = prompt or prompt_input

    @property
    def auth_config_path(self) -> Path:
        return self.config_dir / AUTH_CONFIG_FILE

    @classmethod
    def from_env(cls, verbosity: int = 0, **overrides: Any) -> "ExecutionContext":
        """Build a context from defaults, settings.toml, then environment.

        Environment variables win over settings.toml, which wins over the
        built-in defaults. Keyword overrides (e.g. from CLI flags) win over all.
        """
        config_dir = get_user_config_dir()
        settings = load_user_settings(config_dir)

        api_url = os.environ.get("XRIFT_API_URL") or settings.get(
            "api_url", DEFAULT_API_URL
        )
        frontend_url = os.environ.get("XRIFT_FRONTEND_URL") or settings.get(
            "frontend_url", DEFAULT_FRONTEND_URL
        )
        upload_settings = settings.get("upload", {})
        if not isinstance(upload_settings, dict):
            raise ConfigInvalidError(
                f"[upload] in {config_dir / SETTINGS_FILE} must be a table"
            )
        jobs = upload_settings.get("jobs", DEFAULT_UPLOAD_JOBS)
        if not isinstance(jobs, int):
            raise ConfigInvalidError(
                f"upload.jobs in {config_dir / SETTINGS_FILE} must be an integer"
            )

        options: dict[str, Any] = {
            "api_url": api_url,
            "frontend_url": frontend_url,
            "verbosity": verbosity,
            "jobs": jobs,
        }
        options.update({k: v for k, v in overrides.items() if v is not None})
        return cls(config_dir, **options)


# =============================================================================
# Low-level Utilities
# =============================================================================


def with_file_lock(path: Path, timeout: float = 10.0):
    """Context manager for cross-platform file locking.

    Args:
        path: Path to lock file
        timeout: Seconds to wait for lock (default 10s, -1 for infinite)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    return _FileLock(path, timeout=timeout)


def atomic_write_bytes(dest: Path, data: bytes) -> None:
    """Write bytes to dest atomically via temp file + rename."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=dest.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(temp_path, dest)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def write_json_file(dest: Path, data: dict[str, Any]) -> None:
    """Write a JSON document atomically under a sibling lock file."""
    with with_file_lock(dest.with_suffix(".lock")):
        atomic_write_bytes(dest, (json.dumps(data, indent=2) + "\n").encode("utf-8"))


# =============================================================================
# Credential Store
# =============================================================================


def load_auth_config(ctx: ExecutionContext) -> dict[str, Any] | None:
    """Read the stored credential, or None when not logged in."""
    path = ctx.auth_config_path
    if not path.exists():
        return None

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring corrupted credential file: {path}")
        return None

    if not isinstance(data, dict) or not data.get("token"):
        return None
    return data


def save_auth_config(ctx: ExecutionContext, credential: dict[str, Any]) -> None:
    """Persist the credential, readable only by the current user."""
    path = ctx.auth_config_path
    write_json_file(path, credential)
    os.chmod(path, 0o600)
    logger.debug(f"Saved credential to {path}")


def delete_auth_config(ctx: ExecutionContext) -> bool:
    """Remove the stored credential. Returns False if there was none."""
    path = ctx.auth_config_path
    with with_file_lock(path.with_suffix(".lock")):
        if not path.exists():
            return False
        path.unlink()
    logger.debug(f"Deleted credential {path}")
    return True


def get_token(ctx: ExecutionContext) -> str | None:
    credential = load_auth_config(ctx)
    return credential["token"] if credential else None


def is_token_valid(credential: dict[str, Any], now: datetime | None = None) -> bool:
    """Advisory expiry check. The server's verify call is the real authority."""
    if not credential.get("token"):
        return False
    expires_at = credential.get("expiresAt")
    if not expires_at:
        return True

    try:
        expiry = datetime.fromisoformat(expires_at.replace("Z", "+00:00"))
    except ValueError:
        return False
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry > (now or utc_now())


# =============================================================================
# Project Configuration
# =============================================================================


def load_project_config(project_root: Path) -> dict[str, Any]:
    """Load and validate xrift.json from the project root."""
    config_path = project_root / PROJECT_CONFIG_FILE
    if not config_path.exists():
        raise ConfigMissingError(
            f"Project config not found: {config_path}",
            hint=f"Create {PROJECT_CONFIG_FILE} in the project root",
        )

    try:
        with config_path.open("r", encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigInvalidError(f"{PROJECT_CONFIG_FILE} is not valid JSON: {e}")

    world = config.get("world") if isinstance(config, dict) else None
    if not isinstance(world, dict) or not world.get("distDir"):
        raise ConfigInvalidError(
            f"world.distDir is not set in {PROJECT_CONFIG_FILE}",
            hint='Add {"world": {"distDir": "dist"}}',
        )

    ignore = world.get("ignore", [])
    if not isinstance(ignore, list) or not all(isinstance(p, str) for p in ignore):
        raise ConfigInvalidError(
            f"world.ignore in {PROJECT_CONFIG_FILE} must be a list of glob patterns"
        )

    logger.debug(f"Loaded project config: {config_path}")
    return config


def world_metadata_path(project_root: Path) -> Path:
    return project_root / PROJECT_META_DIR / WORLD_META_FILE


def load_world_metadata(project_root: Path) -> dict[str, Any] | None:
    """Read .xrift/world.json, or None when the world was never uploaded."""
    meta_path = world_metadata_path(project_root)
    if not meta_path.exists():
        return None

    try:
        with meta_path.open("r", encoding="utf-8") as f:
            metadata = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigInvalidError(
            f"{meta_path} is not valid JSON: {e}",
            hint="Delete it to upload as a new world",
        )

    if not isinstance(metadata, dict) or not metadata.get("id"):
        raise ConfigInvalidError(
            f"{meta_path} has no world id", hint="Delete it to upload as a new world"
        )
    return metadata


def save_world_metadata(project_root: Path, metadata: dict[str, Any]) -> None:
    """Write .xrift/world.json atomically."""
    meta_path = world_metadata_path(project_root)
    write_json_file(meta_path, metadata)
    logger.debug(f"Saved world metadata to {meta_path}")


def is_valid_project_name(name: str) -> bool:
    """Project names are lowercase letters, digits and hyphens.

    Kept for project tooling that names new world directories.
    """
    return PROJECT_NAME_PATTERN.fullmatch(name) is not None


# =============================================================================
# Directory Scanning
# =============================================================================


def _match_segments(path_parts: list[str], pattern_parts: list[str]) -> bool:
    if not pattern_parts:
        return not path_parts

    head = pattern_parts[0]
    if head == "**":
        rest = pattern_parts[1:]
        return any(
            _match_segments(path_parts[i:], rest) for i in range(len(path_parts) + 1)
        )

    if not path_parts:
        return False
    return fnmatch.fnmatchcase(path_parts[0], head) and _match_segments(
        path_parts[1:], pattern_parts[1:]
    )


def matches_ignore_pattern(rel_path: str, pattern: str) -> bool:
    """Match a root-relative path against a glob pattern.

    `*`, `?` and `[...]` match within one path segment (dotfiles included),
    `**` matches any number of whole segments.

    Examples:
        "a.map" and "js/vendor/a.map" both match "**/*.map"
        "cache/tmp/x.bin" matches "cache/**"
        ".DS_Store" matches ".*"
    """
    pattern = pattern.strip().replace("\\", "/")
    if pattern.startswith("./"):
        pattern = pattern[2:]
    pattern = pattern.rstrip("/")
    if not pattern:
        return False

    return _match_segments(rel_path.split("/"), pattern.split("/"))


def is_ignored(rel_path: str, ignore_patterns: list[str]) -> bool:
    return any(matches_ignore_pattern(rel_path, p) for p in ignore_patterns)


def scan_directory(root: Path, ignore_patterns: list[str] | None = None) -> list[Path]:
    """Find all files under root, skipping ignored paths.

    A directory whose relative path matches an ignore pattern is pruned with
    everything below it. Order follows filesystem traversal.
    """
    root = Path(root).absolute()
    ignore_patterns = ignore_patterns or []
    files = []

    for dirpath, dirs, filenames in os.walk(root):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        dirs[:] = [d for d in dirs if not is_ignored(prefix + d, ignore_patterns)]

        for filename in filenames:
            if is_ignored(prefix + filename, ignore_patterns):
                logger.debug(f"Ignored: {prefix + filename}")
                continue
            file_path = current / filename
            if file_path.is_file():
                files.append(file_path)

    return files


def validate_dist_dir(dist_dir: Path) -> None:
    if not dist_dir.exists():
        raise PathNotFoundError(
            f"distDir not found: {dist_dir}",
            hint="Build the world first or fix world.distDir in xrift.json",
        )
    if not dist_dir.is_dir():
        raise PathNotADirectoryError(f"distDir is not a directory: {dist_dir}")


# =============================================================================
# Hashing & File Info
# =============================================================================


class UploadFileInfo(NamedTuple):
    local_path: Path
    remote_path: str
    size: int


def build_upload_files(dist_dir: Path, paths: list[Path]) -> list[UploadFileInfo]:
    """Pair each scanned file with its forward-slash path relative to dist_dir."""
    dist_dir = Path(dist_dir).absolute()
    return [
        UploadFileInfo(
            local_path=path,
            remote_path=path.relative_to(dist_dir).as_posix(),
            size=path.stat().st_size,
        )
        for path in paths
    ]


def compute_content_hash(files: list[UploadFileInfo]) -> str:
    """Fingerprint a file set: SHA256 over paths and bytes in sorted path order.

    Each file contributes its remote path, a NUL separator, then its bytes, so
    both renames and content edits change the result while scan order does not.
    """
    sha256 = hashlib.sha256()

    for info in sorted(files, key=lambda f: f.remote_path):
        sha256.update(info.remote_path.encode("utf-8") + b"\0")
        with Path(info.local_path).open("rb") as f:
            while chunk := f.read(HASH_CHUNK_SIZE):
                sha256.update(chunk)

    return sha256.hexdigest()[:CONTENT_HASH_LENGTH]


def total_size(files: list[UploadFileInfo]) -> int:
    return sum(info.size for info in files)


def get_mime_type(path: str | Path) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


# =============================================================================
# API Client
# =============================================================================


class SignedUrlGrant(NamedTuple):
    remote_path: str
    upload_url: str
    public_url: str | None
    expires_at: str | None


class UploadGrantSet(NamedTuple):
    grants: list[SignedUrlGrant]
    version_id: str | None
    content_hash: str | None
    version_number: int | None


def _error_message(exc: urllib.error.HTTPError) -> str:
    """Pull a readable message out of an HTTP error body."""
    try:
        body = exc.read().decode("utf-8", errors="replace")
    except OSError:
        body = ""

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        message = data.get("message") or error
        if message:
            return f"HTTP {exc.code}: {message}"
    if body.strip():
        return f"HTTP {exc.code}: {body.strip()[:200]}"
    return f"HTTP {exc.code}: {exc.reason}"


class ApiClient:
    """JSON client for the XRift API with optional bearer authentication."""

    def __init__(self, base_url: str, token: str | None = None, timeout: float = API_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        """Send a request and return the decoded JSON body ({} when empty).

        Raises:
            TransportError: On any non-2xx status, connection failure or
                undecodable body. `status` is 0 when no response arrived.
        """
        url = self.base_url + path
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        logger.debug(f"{method} {url}")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            raise TransportError(_error_message(e), status=e.code, url=url) from e
        except urllib.error.URLError as e:
            raise TransportError(
                f"Cannot connect to {self.base_url}: {e.reason}", url=url
            ) from e
        except (OSError, http.client.HTTPException) as e:
            # Timeouts and short reads after the connection was accepted
            raise TransportError(f"{method} {path} failed: {e!r}", url=url) from e

        if not body:
            return {}
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            raise TransportError(
                f"Server returned invalid JSON from {path}: {body[:200]!r}", url=url
            )

    def get(self, path: str) -> Any:
        return self.request("GET", path)

    def post(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        return self.request("POST", path, payload if payload is not None else {})

    def patch(self, path: str, payload: dict[str, Any]) -> Any:
        return self.request("PATCH", path, payload)

    # -- World endpoints -----------------------------------------------------

    def create_world(self, fields: dict[str, Any]) -> str:
        data = self.post(WORLDS_PATH, fields)
        world_id = data.get("id") if isinstance(data, dict) else None
        if not world_id:
            raise TransportError("Create world response did not include an id")
        return world_id

    def update_world(self, world_id: str, fields: dict[str, Any]) -> Any:
        return self.patch(f"{WORLDS_PATH}/{world_id}", fields)

    def request_upload_urls(
        self, world_id: str, content_hash: str, file_size: int, manifest: list[dict[str, str]]
    ) -> UploadGrantSet:
        data = self.post(
            f"{WORLDS_PATH}/{world_id}/upload-urls",
            {"contentHash": content_hash, "fileSize": file_size, "files": manifest},
        )
        if isinstance(data, list):
            raw_grants, data = data, {}
        elif isinstance(data, dict):
            raw_grants = data.get("urls", data.get("uploadUrls"))
        else:
            raw_grants = None
        if not isinstance(raw_grants, list):
            raise TransportError("Upload URL response did not include a list of URLs")

        grants = []
        for entry in raw_grants:
            upload_url = entry.get("uploadUrl") or entry.get("url")
            if not upload_url:
                raise TransportError(f"Upload URL missing for {entry.get('path')}")
            grants.append(
                SignedUrlGrant(
                    remote_path=entry.get("path", ""),
                    upload_url=upload_url,
                    public_url=entry.get("publicUrl"),
                    expires_at=entry.get("expiresAt"),
                )
            )

        return UploadGrantSet(
            grants=grants,
            version_id=data.get("versionId"),
            content_hash=data.get("contentHash"),
            version_number=data.get("versionNumber"),
        )

    def complete_upload(self, world_id: str, version_id: str | None = None) -> Any:
        payload = {"versionId": version_id} if version_id else {}
        return self.post(f"{WORLDS_PATH}/{world_id}/complete", payload)


def verify_token(ctx: ExecutionContext, token: str) -> dict[str, Any]:
    """Ask the server whether token is valid. 401 means {"valid": False}."""
    client = ApiClient(ctx.api_url, token)
    try:
        data = client.get(AUTH_VERIFY_PATH)
    except TransportError as e:
        if e.status == 401:
            return {"valid": False}
        raise TransportError(
            f"Token verification failed: {e}", status=e.status, url=e.url
        ) from e

    if not isinstance(data, dict):
        return {"valid": False}
    return data


def exchange_code_for_token(ctx: ExecutionContext, code: str) -> dict[str, Any]:
    """Swap a one-time authorization code for a CLI token."""
    client = ApiClient(ctx.api_url)
    try:
        data = client.post(AUTH_TOKEN_EXCHANGE_PATH, {"code": code})
    except TransportError as e:
        if e.status == 401:
            raise AuthInvalidError("Authorization code is invalid or expired") from e
        raise TransportError(
            f"Token exchange failed: {e}", status=e.status, url=e.url
        ) from e

    if not isinstance(data, dict) or not data.get("token"):
        raise AuthInvalidError("Token exchange response did not include a token")
    return data


def get_authenticated_client(ctx: ExecutionContext) -> ApiClient:
    """Return a client for the stored token after re-verifying it.

    The stored expiresAt is never trusted on its own; every call goes to the
    verify endpoint.
    """
    credential = load_auth_config(ctx)
    if not credential:
        raise AuthRequiredError("Login required", hint="Run `xrift login`")

    if not is_token_valid(credential, ctx.now()):
        logger.debug("Stored credential looks expired, verifying with server anyway")

    verification = verify_token(ctx, credential["token"])
    if not verification.get("valid"):
        raise AuthInvalidError(
            "Stored token is invalid", hint="Run `xrift login` to re-authenticate"
        )

    return ApiClient(ctx.api_url, credential["token"])


def upload_file(upload_url: str, info: UploadFileInfo, timeout: float = UPLOAD_TIMEOUT) -> None:
    """PUT one file to its signed URL, streaming from disk."""
    headers = {
        "Content-Type": get_mime_type(info.remote_path),
        "Content-Length": str(info.size),
    }
    with Path(info.local_path).open("rb") as f:
        try:
            req = urllib.request.Request(upload_url, data=f, headers=headers, method="PUT")
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                resp.read()
        except urllib.error.HTTPError as e:
            raise TransportError(_error_message(e), status=e.code, url=upload_url) from e
        except urllib.error.URLError as e:
            raise TransportError(
                f"Cannot connect to upload URL: {e.reason}", url=upload_url
            ) from e
        except ValueError as e:
            raise TransportError(f"Invalid upload URL: {e}", url=upload_url) from e
        except (OSError, http.client.HTTPException) as e:
            raise TransportError(f"Upload of {info.remote_path} failed: {e!r}", url=upload_url) from e


# =============================================================================
# Browser Login
# =============================================================================


SUCCESS_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>XRift CLI - Login succeeded</title>
    <style>
      body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
             display: flex; justify-content: center; align-items: center;
             height: 100vh; margin: 0;
             background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); }
      .container { background: white; padding: 3rem; border-radius: 1rem;
                   box-shadow: 0 10px 40px rgba(0,0,0,0.2); text-align: center; }
      h1 { color: #667eea; }
      p { color: #666; }
    </style>
  </head>
  <body>
    <div class="container">
      <h1>Login succeeded</h1>
      <p>You are now logged in to the XRift CLI.</p>
      <p>You can close this window and return to the terminal.</p>
    </div>
  </body>
</html>
"""

FAILURE_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>XRift CLI - Login failed</title>
    <style>
      body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
             display: flex; justify-content: center; align-items: center;
             height: 100vh; margin: 0;
             background: linear-gradient(135deg, #f093fb 0%, #f5576c 100%); }
      .container { background: white; padding: 3rem; border-radius: 1rem;
                   box-shadow: 0 10px 40px rgba(0,0,0,0.2); text-align: center; }
      h1 { color: #f5576c; }
      p { color: #666; }
    </style>
  </head>
  <body>
    <div class="container">
      <h1>Login failed</h1>
      <p>Authentication did not complete.</p>
      <p>Return to the terminal and try again.</p>
    </div>
  </body>
</html>
"""


def generate_state() -> str:
    """Random anti-forgery token: 32 bytes, hex encoded."""
    return secrets.token_hex(32)


def build_login_url(frontend_url: str, callback_url: str, state: str) -> str:
    query = urllib.parse.urlencode({"callback": callback_url, "state": state})
    return f"{frontend_url.rstrip('/')}{AUTH_LOGIN_PATH}?{query}"


def describe_user(verification: dict[str, Any]) -> tuple[str | None, str | None]:
    """Return (username, email) from a verify or exchange response."""
    user = verification.get("user") or {}
    username = (
        verification.get("username")
        or user.get("username")
        or user.get("displayName")
    )
    email = verification.get("email") or user.get("email")
    return username, email


class AuthStatus(Enum):
    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATUSES = {AuthStatus.SUCCEEDED, AuthStatus.FAILED, AuthStatus.TIMED_OUT}


class LoginSession:
    """State machine for one browser login attempt.

    IDLE -> AWAITING_CALLBACK -> SUCCEEDED | FAILED | TIMED_OUT

    `outcome` is a Future resolved exactly once with the terminal status, or
    with the error that ended the attempt. The deadline is measured with
    `ctx.clock`, so a fake clock can drive the timeout path in tests, and
    `handle_callback` takes a raw request path so tests can feed synthetic
    requests without a socket.
    """

    def __init__(self, ctx: ExecutionContext, timeout: float = AUTH_TIMEOUT_SECONDS):
        self.ctx = ctx
        self.timeout = timeout
        self.state = generate_state()
        self.status = AuthStatus.IDLE
        self.deadline: float | None = None
        self.verification: dict[str, Any] = {}
        self.outcome: Future = Future()
        self._lock = threading.Lock()

    @property
    def callback_url(self) -> str:
        return f"http://localhost:{self.ctx.callback_port}{CALLBACK_PATH}"

    @property
    def login_url(self) -> str:
        return build_login_url(self.ctx.frontend_url, self.callback_url, self.state)

    def start(self) -> None:
        if self.status is not AuthStatus.IDLE:
            raise RuntimeError(f"Login session already {self.status.value}")
        self.deadline = self.ctx.clock() + self.timeout
        self.status = AuthStatus.AWAITING_CALLBACK
        self.outcome.set_running_or_notify_cancel()
        logger.debug(f"Awaiting login callback for {self.timeout:.0f}s")

    def done(self) -> bool:
        return self.outcome.done()

    def remaining(self) -> float:
        if self.deadline is None:
            return self.timeout
        return max(0.0, self.deadline - self.ctx.clock())

    def check_deadline(self) -> bool:
        """Resolve TIMED_OUT if the deadline passed. Returns True once done."""
        if self.status is AuthStatus.AWAITING_CALLBACK and self.remaining() <= 0:
            self._resolve(
                AuthStatus.TIMED_OUT,
                AuthTimeoutError(
                    "Login timed out waiting for the browser callback",
                    hint="Run `xrift login` again",
                ),
            )
        return self.done()

    def handle_callback(self, request_path: str) -> tuple[int, str]:
        """Process one request to the listener and return (status, body)."""
        parsed = urllib.parse.urlsplit(request_path)
        if parsed.path != CALLBACK_PATH:
            return 404, "Not Found"

        if self.check_deadline() or self.status is not AuthStatus.AWAITING_CALLBACK:
            return 410, FAILURE_PAGE

        params = urllib.parse.parse_qs(parsed.query)
        returned_state = params.get("state", [""])[0]
        token = params.get("token", [""])[0]
        code = params.get("code", [""])[0]

        try:
            if not returned_state or not secrets.compare_digest(
                returned_state.encode("utf-8"), self.state.encode("utf-8")
            ):
                raise AuthStateMismatchError("Invalid state parameter in login callback")

            if not token and code:
                token = exchange_code_for_token(self.ctx, code)["token"]
            if not token:
                raise AuthInvalidError("No token received in login callback")

            verification = verify_token(self.ctx, token)
            if not verification.get("valid"):
                raise AuthInvalidError("The server rejected the login token")

            try:
                save_auth_config(self.ctx, {"token": token})
            except (OSError, _LockTimeout) as e:
                raise XRiftError(
                    f"Could not save credential: {e}",
                    hint=f"Check that {self.ctx.config_dir} is a writable directory",
                ) from e
        except XRiftError as e:
            logger.warning(f"Login callback rejected: {e}")
            self._resolve(AuthStatus.FAILED, e)
            return 400, FAILURE_PAGE

        self.verification = verification
        self._resolve(AuthStatus.SUCCEEDED)
        return 200, SUCCESS_PAGE

    def wait(self) -> AuthStatus:
        """Return SUCCEEDED or raise the error that ended the attempt."""
        return self.outcome.result(timeout=0)

    def _resolve(self, status: AuthStatus, error: XRiftError | None = None) -> None:
        with self._lock:
            if self.outcome.done():
                return
            self.status = status
            if error is not None:
                self.outcome.set_exception(error)
            else:
                self.outcome.set_result(status)
        logger.info(f"Login session {status.value}")


class _CallbackHandler(http.server.BaseHTTPRequestHandler):
    server: "CallbackServer"
    timeout = CALLBACK_READ_TIMEOUT

    def setup(self) -> None:
        # An idle connection must not hold the listener past the login deadline
        self.timeout = max(0.1, min(CALLBACK_READ_TIMEOUT, self.server.session.remaining()))
        super().setup()

    def do_GET(self) -> None:
        status, body = self.server.session.handle_callback(self.path)
        payload = body.encode("utf-8")
        content_type = "text/plain" if status == 404 else "text/html"

        self.send_response(status)
        self.send_header("Content-Type", f"{content_type}; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("Callback listener: " + format % args)


class CallbackServer(http.server.HTTPServer):
    """Local listener that feeds browser redirects into a LoginSession."""

    def __init__(self, session: LoginSession, port: int):
        self.session = session
        super().__init__(("localhost", port), _CallbackHandler)


def serve_login_session(server: Any, session: LoginSession, poll_interval: float = 0.5) -> AuthStatus:
    """Handle requests one at a time until the session reaches a terminal state.

    The caller owns the server and must close it.
    """
    while not session.check_deadline():
        server.timeout = min(poll_interval, session.remaining())
        server.handle_request()
    return session.wait()


def login(ctx: ExecutionContext, timeout: float = AUTH_TIMEOUT_SECONDS) -> dict[str, Any]:
    """Run the browser login flow and return the server's verify response.

    Raises:
        AuthInvalidError: Callback was forged, empty or rejected by the server
        AuthTimeoutError: No callback before the deadline
    """
    session = LoginSession(ctx, timeout=timeout)

    try:
        server = CallbackServer(session, ctx.callback_port)
    except OSError as e:
        raise XRiftError(
            f"Cannot listen on localhost:{ctx.callback_port}: {e}",
            hint=f"Free port {ctx.callback_port} and retry",
        )

    with server:
        session.start()
        print("Opening the browser to log in...")
        print(colorize(f"Login URL: {session.login_url}", "GRAY"))

        try:
            opened = ctx.open_browser(session.login_url)
        except (webbrowser.Error, OSError) as e:
            logger.warning(f"Failed to launch browser: {e}")
            opened = False
        if not opened:
            print(colorize("Could not open a browser automatically.", "YELLOW"))
            print("Open this URL in your browser:")
            print(colorize(session.login_url, "BLUE"))

        print("Waiting for authentication...")
        serve_login_session(server, session)

    username, _ = describe_user(session.verification)
    logger.info(f"Logged in as {username or 'unknown user'}")
    return session.verification


def logout(ctx: ExecutionContext) -> bool:
    """Forget the stored credential. Returns False if not logged in."""
    return delete_auth_config(ctx)


def whoami(ctx: ExecutionContext) -> dict[str, Any] | None:
    """Return the verify response for the stored token, or None if logged out."""
    token = get_token(ctx)
    if not token:
        return None
    return verify_token(ctx, token)


# =============================================================================
# World Upload
# =============================================================================


class UploadResult(NamedTuple):
    world_id: str
    created: bool
    file_count: int
    total_size: int
    content_hash: str


def run_build_command(command: str, cwd: Path) -> None:
    """Run the configured build command with output going straight to the terminal."""
    logger.info(f"Running build command: {command}")
    result = subprocess.run(command, shell=True, cwd=cwd)
    if result.returncode != 0:
        raise BuildFailedError(command, result.returncode)


def resolve_thumbnail(dist_dir: Path, thumbnail_path: str) -> str:
    """Check that thumbnail_path names a file inside dist_dir.

    Returns the forward-slash path relative to dist_dir.
    """
    dist_resolved = dist_dir.resolve()
    thumbnail = (dist_dir / thumbnail_path).resolve()

    try:
        rel_path = thumbnail.relative_to(dist_resolved).as_posix()
    except ValueError:
        raise ConfigInvalidError(
            f"thumbnailPath must be inside distDir: {thumbnail_path}"
        )

    if not thumbnail.exists():
        raise PathNotFoundError(
            f"Thumbnail not found: {thumbnail}",
            hint="thumbnailPath is relative to distDir",
        )
    if not thumbnail.is_file():
        raise ConfigInvalidError(f"Thumbnail is not a file: {thumbnail}")
    return rel_path


def _world_fields(title: str | None, description: str | None, thumbnail: str | None) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if title:
        fields["name"] = title
    if description is not None:
        fields["description"] = description
    if thumbnail is not None:
        fields["thumbnailPath"] = thumbnail
    return fields


def resolve_world_details(
    ctx: ExecutionContext, project_root: Path, world_config: dict[str, Any]
) -> tuple[str, str | None]:
    """Pick a title and description for a new world."""
    default_title = project_root.resolve().name

    title = world_config.get("title")
    if not title:
        if ctx.interactive:
            title = ctx.prompt("World title", default_title) or default_title
        else:
            title = default_title

    description = world_config.get("description")
    if description is None and ctx.interactive:
        description = ctx.prompt("Description (optional)", None) or None

    return title, description


def transfer_files(
    files: list[UploadFileInfo],
    grants: list[SignedUrlGrant],
    jobs: int = DEFAULT_UPLOAD_JOBS,
    progress: Callable[[int, int, str], None] | None = None,
) -> int:
    """Upload every file to its grant, stopping at the first failure.

    Files are paired with grants by position. Once one transfer fails no new
    transfer starts; queued ones are cancelled and running ones finish.
    Progress is reported from this thread, once per completed file.

    Returns:
        Number of files uploaded
    """
    total = len(files)
    completed = 0
    failed = threading.Event()

    def _upload_one(info: UploadFileInfo, grant: SignedUrlGrant) -> bool:
        if failed.is_set():
            return False
        logger.debug(f"PUT {info.remote_path} ({info.size} bytes)")
        try:
            upload_file(grant.upload_url, info)
        except Exception:
            failed.set()
            raise
        return True

    with ThreadPoolExecutor(max_workers=max(1, jobs)) as executor:
        future_map = {
            executor.submit(_upload_one, info, grant): info
            for info, grant in zip(files, grants)
        }
        for future in as_completed(future_map):
            info = future_map[future]
            try:
                uploaded = future.result()
            except (TransportError, OSError) as e:
                for pending in future_map:
                    pending.cancel()
                logger.error(f"Upload failed for {info.remote_path}: {e}")
                raise TransferFailedError(info.remote_path, e) from e

            if uploaded:
                completed += 1
                logger.info(f"Uploaded {info.remote_path}")
                if progress:
                    progress(completed, total, info.remote_path)

    return completed


def upload_world(
    ctx: ExecutionContext,
    project_root: Path,
    progress: Callable[[int, int, str], None] | None = None,
) -> UploadResult | None:
    """Publish the project's distDir as a world.

    Returns None when there is nothing to upload. Every stage is fatal except
    the metadata update of an existing world, which only logs a warning.
    """
    project_root = Path(project_root)

    config = load_project_config(project_root)
    world_config = config["world"]
    dist_dir = (project_root / world_config["distDir"]).absolute()
    print(f"Loaded {PROJECT_CONFIG_FILE}: distDir={world_config['distDir']}")

    build_command = world_config.get("buildCommand")
    if build_command:
        print(f"Building: {build_command}")
        run_build_command(build_command, project_root)

    validate_dist_dir(dist_dir)

    paths = scan_directory(dist_dir, world_config.get("ignore", []))
    if not paths:
        logger.info(f"No files to upload in {dist_dir}")
        print(colorize(f"No files to upload in {dist_dir}", "YELLOW"))
        return None
    print(f"Found {len(paths)} files")

    thumbnail = None
    if world_config.get("thumbnailPath"):
        thumbnail = resolve_thumbnail(dist_dir, world_config["thumbnailPath"])

    files = build_upload_files(dist_dir, paths)

    client = get_authenticated_client(ctx)

    existing = load_world_metadata(project_root)
    title = world_config.get("title")
    description = world_config.get("description")

    if existing:
        world_id = existing["id"]
        created = False
        print(f"Updating existing world (ID: {world_id})")
        fields = _world_fields(title, description, thumbnail)
        if fields:
            try:
                client.update_world(world_id, fields)
                logger.info(f"Updated metadata for world {world_id}")
            except TransportError as e:
                logger.warning(f"Failed to update world metadata: {e}")
                print(
                    colorize(f"Warning: failed to update world metadata: {e}", "YELLOW"),
                    file=sys.stderr,
                )
    else:
        title, description = resolve_world_details(ctx, project_root, world_config)
        world_id = client.create_world(_world_fields(title, description, thumbnail))
        created = True
        logger.info(f"Created world {world_id}")
        print(f"Created new world (ID: {world_id})")

    content_hash = compute_content_hash(files)
    size = total_size(files)
    logger.debug(f"Content hash: {content_hash}, total size: {size}")

    manifest = [
        {"path": info.remote_path, "contentType": get_mime_type(info.remote_path)}
        for info in files
    ]
    grant_set = client.request_upload_urls(world_id, content_hash, size, manifest)
    if len(grant_set.grants) != len(files):
        raise TransportError(
            f"Expected {len(files)} upload URLs, received {len(grant_set.grants)}"
        )
    print(f"Uploading {len(files)} files ({format_bytes(size)})...")

    transfer_files(files, grant_set.grants, jobs=ctx.jobs, progress=progress)

    try:
        client.complete_upload(world_id, grant_set.version_id)
    except TransportError as e:
        raise UploadIncompleteError(world_id, e) from e

    uploaded_at = format_timestamp(ctx.now())
    save_world_metadata(
        project_root,
        {
            "id": world_id,
            "createdAt": existing["createdAt"] if existing and existing.get("createdAt") else uploaded_at,
            "lastUploadedAt": uploaded_at,
        },
    )

    return UploadResult(
        world_id=world_id,
        created=created,
        file_count=len(files),
        total_size=size,
        content_hash=content_hash,
    )


# =============================================================================
# Commands
# =============================================================================


def cmd_login(ctx: ExecutionContext) -> int:
    try:
        verification = login(ctx)
    except XRiftError as e:
        return die(str(e), hint=e.hint)

    print(colorize("Logged in successfully", "GREEN"))
    username, _ = describe_user(verification)
    if username:
        print(f"Logged in as: {username}")
    return 0


def cmd_logout(ctx: ExecutionContext) -> int:
    try:
        removed = logout(ctx)
    except XRiftError as e:
        return die(str(e), hint=e.hint)

    if removed:
        print(colorize("Logged out", "GREEN"))
    else:
        print(colorize("Not logged in", "YELLOW"))
    return 0


def cmd_whoami(ctx: ExecutionContext) -> int:
    try:
        verification = whoami(ctx)
    except XRiftError as e:
        return die(f"Failed to fetch user info: {e}", hint=e.hint)

    if verification is None:
        print(colorize("Not logged in", "YELLOW"))
        print("Run `xrift login` to log in")
        return 0

    if not verification.get("valid"):
        print(colorize("Stored token is invalid", "RED"))
        print("Run `xrift login` to log in again")
        return 0

    print(colorize("Logged in", "GREEN"))
    username, email = describe_user(verification)
    if username:
        print(f"Username: {username}")
    if email:
        print(f"Email: {email}")
    return 0


def _print_progress(done: int, total: int, remote_path: str) -> None:
    print(f"  [{done}/{total}] {remote_path}")


def cmd_upload_world(ctx: ExecutionContext, project_root: Path) -> int:
    try:
        result = upload_world(ctx, project_root, progress=_print_progress)
    except XRiftError as e:
        return die(str(e), hint=e.hint)

    if result is None:
        return 0

    print(colorize(f"World upload complete: {result.file_count} files", "GREEN"))
    print(f"World ID: {result.world_id}")
    return 0


# =============================================================================
# CLI Entry Point
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="xrift",
        description="XRift CLI - upload worlds to XRift",
        exit_on_error=False,
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -v for DEBUG, -vv for TRACE)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("login", help="Log in through the browser")
    subparsers.add_parser("logout", help="Forget the stored credential")
    subparsers.add_parser("whoami", help="Show the logged in user")

    upload_parser = subparsers.add_parser("upload", help="Upload content to XRift")
    upload_subparsers = upload_parser.add_subparsers(
        dest="upload_target", help="What to upload"
    )
    world_parser = upload_subparsers.add_parser("world", help="Upload the world in this project")
    world_parser.add_argument(
        "--jobs", "-j", type=int, help="Number of parallel file uploads"
    )
    world_parser.add_argument(
        "--yes", "-y", action="store_true", help="Do not prompt; use config and defaults"
    )

    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse calls sys.exit() on --help, --version or errors
        return e.code if isinstance(e.code, int) else 1
    except argparse.ArgumentError as e:
        return die(str(e))

    try:
        ctx = ExecutionContext.from_env(
            verbosity=args.verbose,
            jobs=getattr(args, "jobs", None),
            interactive=sys.stdin is not None
            and sys.stdin.isatty()
            and not getattr(args, "yes", False),
        )
    except XRiftError as e:
        setup_logging(verbosity=args.verbose, log_file=False)
        return die(str(e), hint=e.hint)

    setup_logging(verbosity=args.verbose, log_file=True, log_dir=ctx.config_dir)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "login":
        return cmd_login(ctx)
    elif args.command == "logout":
        return cmd_logout(ctx)
    elif args.command == "whoami":
        return cmd_whoami(ctx)
    elif args.command == "upload":
        if args.upload_target == "world":
            return cmd_upload_world(ctx, Path.cwd())
        upload_parser.print_help()
        return 0

    return 0


if __name__ == "__main__":
    sys.exit(main())
