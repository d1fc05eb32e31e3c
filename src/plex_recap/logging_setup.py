import logging
import sys

class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for terminal output."""

    COLORS = {
        "DEBUG": "\033[90m",
        "INFO": "\033[97m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[95m",
    }
    RESET = "\033[0m"

    ICONS = {
        "DEBUG": "   ",
        "INFO": " \033[94m>\033[0m ",
        "WARNING": " \033[93m!\033[0m ",
        "ERROR": " \033[91mX\033[0m ",
        "CRITICAL": " \033[95m!!\033[0m ",
    }

    def format(self, record):
        msg = record.getMessage()

        if msg == "recap_build_start":
            year = getattr(record, "year", "?")
            return f"\033[36m🔄\033[0m Building {year} recap..."
        elif msg == "history_fetched":
            count = getattr(record, "count", 0)
            return f"\033[96m📥\033[0m Fetched \033[1m{count}\033[0m history records"
        elif msg == "history_normalized":
            return None
        elif msg == "history_fetch_failed":
            reason = getattr(record, "reason", "Unknown error")
            return f"\033[91mX\033[0m Viewing history unavailable: {reason}"
        elif msg == "optional_source_failed":
            source = getattr(record, "source", "unknown")
            reason = getattr(record, "reason", "Unknown error")
            return f"\033[93m⚠\033[0m Skipping {source}: {reason}"
        elif msg == "optional_source_disabled":
            source = getattr(record, "source", "unknown")
            return f"\033[90m   {source} not configured, skipping\033[0m"
        elif msg == "title_leaderboard_failed":
            title = getattr(record, "title", "unknown")
            return f"\033[93m⚠\033[0m Leaderboard lookup failed for \033[1m{title}\033[0m"
        elif msg == "library_section_failed":
            section = getattr(record, "section", "unknown")
            return f"\033[93m⚠\033[0m Could not list library \033[1m{section}\033[0m"
        elif msg == "library_episodes_failed":
            section = getattr(record, "section", "unknown")
            return f"\033[93m⚠\033[0m Could not count episodes in \033[1m{section}\033[0m"
        elif msg == "recap_build_finished":
            minutes = getattr(record, "total_watch_minutes", 0)
            sources = getattr(record, "sources", "")
            return f"\033[92m✓\033[0m Recap ready (\033[1m{minutes}\033[0m min watched, sources: {sources})"
        elif msg == "runtime_docker_mode":
            return f"\033[94m🐳\033[0m Running in Docker mode"
        elif msg == "recap_written":
            path = getattr(record, "path", "stdout")
            return f"\033[96m📤\033[0m Wrote statistics to \033[90m{path}\033[0m"

        icon = self.ICONS.get(record.levelname, "   ")
        return f"{icon}{msg}"


class NoNoneFilter(logging.Filter):
    def filter(self, record):
        formatted = ColorFormatter().format(record)
        return formatted is not None

def configure_logging(level: str) -> None:
    # stderr keeps stdout free for the JSON document
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColorFormatter())
    console_handler.addFilter(NoNoneFilter())

    logging.root.handlers = []
    logging.root.addHandler(console_handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
