"""
Invoke tasks for local development.

Usage:
    invoke --list                    # List all available tasks
    invoke serve                     # Run the addon with auto-reload
    invoke health                    # Query the running addon's health endpoint
    invoke test-service translator   # Run one package's tests
    invoke clean-sources             # Delete leftover source downloads
"""

import os
import shutil
import sys
import webbrowser
from pathlib import Path

from invoke import task

PROJECT_ROOT = Path(__file__).parent.parent


# Color codes for terminal output
class Colors:
    BLUE = "\033[0;34m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[0;33m"
    RED = "\033[0;31m"
    NC = "\033[0m"


def print_info(message: str) -> None:
    """Print info message in blue"""
    print(f"{Colors.BLUE}ℹ {message}{Colors.NC}")


def print_success(message: str) -> None:
    """Print success message in green"""
    print(f"{Colors.GREEN}✓ {message}{Colors.NC}")


def print_warning(message: str) -> None:
    """Print warning message in yellow"""
    print(f"{Colors.YELLOW}⚠ {message}{Colors.NC}")


def print_error(message: str) -> None:
    """Print error message in red"""
    print(f"{Colors.RED}✗ {message}{Colors.NC}")


##############################################################################
# Running
##############################################################################


@task
def serve(ctx, host="0.0.0.0", port=3000, reload=True):
    """
    Run the addon API with uvicorn.

    Args:
        host: Bind address (default: 0.0.0.0)
        port: Port (default: 3000)
        reload: Restart on source changes (default: True)
    """
    print_info(f"Starting addon on http://{host}:{port}")
    reload_flag = "--reload --reload-dir src" if reload else ""
    with ctx.cd(str(PROJECT_ROOT)):
        ctx.run(
            f"uvicorn addon.main:app --app-dir src --host {host} --port {port} {reload_flag}",
            pty=True,
        )


@task
def health(ctx, url="http://localhost:3000"):
    """
    Check health of the running addon.

    Args:
        url: Base URL of the addon (default: http://localhost:3000)
    """
    print_info(f"Checking {url}/health ...")
    result = ctx.run(f"curl -fsS {url}/health", warn=True)

    if result.ok:
        print_success("Addon is healthy!")
    else:
        print_error("Addon is not responding!")
        sys.exit(1)


##############################################################################
# Job Registry Operations
##############################################################################


@task
def redis_cli(ctx):
    """
    Open Redis CLI against the configured job registry.

    Uses REDIS_URL from the environment (default: redis://localhost:6379).
    """
    redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379")
    print_info(f"Opening Redis CLI for {redis_url}...")
    ctx.run(f"redis-cli -u {redis_url}", pty=True)


@task
def redis_clear_jobs(ctx):
    """
    Remove every translation job entry from Redis.

    WARNING: running jobs lose their duplicate protection!
    """
    redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379")
    print_warning("This will DELETE all 'translation:*' registry entries!")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print_info("Operation cancelled.")
        return

    print_info("Clearing job registry...")
    ctx.run(
        f"redis-cli -u {redis_url} --scan --pattern 'translation:*' "
        f"| xargs -r redis-cli -u {redis_url} DEL"
    )
    print_success("Job registry cleared!")


##############################################################################
# Storage
##############################################################################


@task
def clean_sources(ctx, storage=None):
    """
    Delete leftover source subtitle downloads.

    Jobs remove their own downloads; leftovers only appear after a crash.

    Args:
        storage: Subtitle storage directory (default: SUBTITLE_STORAGE_PATH or ./storage/subtitles)
    """
    storage_root = Path(
        storage or os.environ.get("SUBTITLE_STORAGE_PATH", "./storage/subtitles")
    )
    sources = storage_root / "_sources"

    if not sources.exists():
        print_info(f"No source downloads under {storage_root}")
        return

    shutil.rmtree(sources)
    print_success(f"Removed {sources}")


##############################################################################
# Testing & Quality
##############################################################################


@task
def test_service(ctx, service):
    """
    Test specific package.

    Args:
        service: Package name (addon, common, downloader, translator)

    Example:
        invoke test-service translator
    """
    print_info(f"Running tests for {service}...")
    with ctx.cd(str(PROJECT_ROOT)):
        ctx.run(f"pytest tests/{service}/ -v")


@task
def coverage_html(ctx):
    """
    Generate HTML coverage report and open in browser.

    Runs tests with coverage and opens the HTML report.
    """
    print_info("Generating coverage report...")
    with ctx.cd(str(PROJECT_ROOT)):
        ctx.run(
            "pytest --cov=addon --cov=common --cov=downloader --cov=translator "
            "--cov-report=html --cov-report=term-missing"
        )

    report_path = (PROJECT_ROOT / "htmlcov" / "index.html").absolute()

    if report_path.exists():
        print_success("Coverage report generated!")
        print_info(f"Opening {report_path}")
        webbrowser.open(f"file://{report_path}")
    else:
        print_error("Coverage report not found!")
