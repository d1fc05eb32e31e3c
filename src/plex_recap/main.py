from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from plex_recap.composer import BuildResult, StatisticsComposer
from plex_recap.config import Settings, load_settings
from plex_recap.models import RecapUser
from plex_recap.overseerr_client import OverseerrClient
from plex_recap.plex_client import PlexClient
from plex_recap.tautulli_client import TautulliClient


def main() -> None:
    args = _parse_args()
    settings = load_settings()
    _configure_logging(settings.log_level)
    logger = logging.getLogger("plex_recap")

    if settings.running_in_docker:
        logger.info("runtime_docker_mode", extra={"config_path": settings.config_path})

    year = args.year or datetime.now(settings.tzinfo).year
    user = RecapUser(email=args.email, plex_user_id=args.plex_user_id, username=args.username)

    _print_header(settings, user, year)
    result = asyncio.run(_build(settings=settings, user=user, year=year, logger=logger))

    if not result.success or result.statistics is None:
        logger.error(result.error or "Failed to build statistics")
        sys.exit(1)

    document = json.dumps(result.statistics.to_dict(), indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(document + "\n", encoding="utf-8")
        logger.info("recap_written", extra={"path": args.output})
    else:
        sys.stdout.write(document + "\n")


async def _build(settings: Settings, user: RecapUser, year: int, logger: logging.Logger) -> BuildResult:
    tautulli = TautulliClient(settings=settings, logger=logger)
    plex = PlexClient(settings=settings, logger=logger) if settings.plex_enabled else None
    overseerr = OverseerrClient(settings=settings, logger=logger) if settings.overseerr_enabled else None

    composer = StatisticsComposer(
        history_source=tautulli,
        logger=logger,
        ranking_source=tautulli,
        catalog_source=plex,
        request_source=overseerr,
        tz=settings.tzinfo,
        source_timeout_seconds=settings.source_timeout_seconds,
        top_content_limit=settings.top_content_limit,
        leaderboard_title_limit=settings.leaderboard_title_limit,
        server_name=settings.plex_server_name,
    )
    try:
        return await composer.build(user, year)
    finally:
        await tautulli.close()
        if plex is not None:
            await plex.close()
        if overseerr is not None:
            await overseerr.close()


def _configure_logging(level: str) -> None:
    from plex_recap.logging_setup import configure_logging
    configure_logging(level)

def _print_header(settings: Settings, user: RecapUser, year: int) -> None:
    try:
        package_version = version("plex-recap")
    except PackageNotFoundError:
        package_version = "0.1.0"

    plex_status = settings.plex_url if settings.plex_enabled else "Disabled"
    overseerr_status = settings.overseerr_url if settings.overseerr_enabled else "Disabled"

    err = sys.stderr
    print(file=err)
    print("\033[94m" + "=" * 50 + "\033[0m", file=err)
    print(f"\033[1m   Plex Recap v{package_version}\033[0m", file=err)
    print("\033[94m" + "=" * 50 + "\033[0m", file=err)
    print(file=err)
    print(f"   \033[90mUser:\033[0m      {user.email or user.username or user.plex_user_id}", file=err)
    print(f"   \033[90mYear:\033[0m      {year} ({settings.timezone})", file=err)
    print(f"   \033[90mTautulli:\033[0m  {settings.tautulli_url}", file=err)
    print(f"   \033[90mPlex:\033[0m      {plex_status}", file=err)
    print(f"   \033[90mOverseerr:\033[0m {overseerr_status}", file=err)
    print(file=err)
    print("\033[94m" + "-" * 50 + "\033[0m", file=err)
    print(file=err)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Yearly Plex watch statistics")
    parser.add_argument(
        "--year",
        type=int,
        help="Calendar year to summarize (defaults to the current year).",
    )
    parser.add_argument(
        "--email",
        help="Email address of the user, matched against Tautulli and Overseerr.",
    )
    parser.add_argument(
        "--username",
        help="Tautulli username or friendly name, used when the email does not match.",
    )
    parser.add_argument(
        "--plex-user-id",
        help="Plex user id, the last-resort match in Tautulli.",
    )
    parser.add_argument(
        "--output",
        help="Write the statistics JSON to this file instead of stdout.",
    )
    args = parser.parse_args()
    if not (args.email or args.username or args.plex_user_id):
        parser.error("one of --email, --username or --plex-user-id is required")
    return args


if __name__ == "__main__":
    main()
