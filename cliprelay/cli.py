"""
cliprelay CLI - command-line interface for common operations.

Usage:
    cliprelay init-db              # Create tables
    cliprelay reset-db             # Drop and recreate tables (DESTRUCTIVE!)
    cliprelay health               # Check configuration and database
    cliprelay stats                # Show row counts
    cliprelay prices               # Show the model price table
"""
import sys

from cliprelay.config import get_settings
from cliprelay.db.engine import check_db_health, init_db
from cliprelay.llm.pricing import PRICE_TABLE


def print_header(text: str):
    """Print formatted header."""
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}\n")


def print_status(key: str, value, indent: int = 0):
    """Print formatted status line."""
    spaces = "  " * indent
    print(f"{spaces}{key:30s}: {value}")


def cmd_init_db(reset: bool = False) -> int:
    """Initialize or reset database."""
    print_header("Database Initialization")

    if not get_settings().database_enabled:
        print("DATABASE_URL is not set; the server will use in-memory storage.")
        return 1

    if reset:
        print("WARNING: This will delete all data!")
        confirm = input("Type 'yes' to confirm: ")
        if confirm.lower() != "yes":
            print("Aborted.")
            return 1

    init_db(drop_all=reset)
    print("Database initialized successfully")
    return 0


def cmd_health() -> int:
    """Check configuration and database."""
    print_header("System Health Check")

    settings = get_settings()

    print("Configuration:")
    print_status("Anthropic API Key", "set" if settings.anthropic_available else "not set", 1)
    print_status("OpenAI API Key", "set" if settings.openai_available else "not set", 1)
    print_status("Text model", settings.TEXT_MODEL, 1)
    print_status("Reader model", settings.READER_MODEL, 1)
    print_status("Interpreter model", settings.INTERPRETER_MODEL, 1)
    print_status("Room TTL (s)", settings.ROOM_TTL_SECONDS, 1)

    print("\nStorage:")
    db_health = check_db_health()
    status = db_health.get("status")
    if status == "disabled":
        print_status("Backend", "memory (DATABASE_URL not set)", 1)
    elif status == "healthy":
        print_status("Backend", "sql - healthy", 1)
    else:
        print_status("Backend", f"sql - unhealthy: {db_health.get('error')}", 1)
        return 1

    print()
    return 0


def cmd_stats() -> int:
    """Show database row counts."""
    print_header("Database Statistics")

    db_health = check_db_health()
    if db_health.get("status") != "healthy":
        print(f"Database unavailable: {db_health.get('error') or db_health.get('status')}")
        return 1

    for table, count in db_health.get("counts", {}).items():
        print_status(table, count, 1)
    print()
    return 0


def cmd_prices() -> int:
    """Show the static price table."""
    print_header("Model Prices (USD per 1M tokens)")
    for prefix, price in sorted(PRICE_TABLE.items()):
        print_status(prefix, f"in {price.input_per_mtok:>7.2f}   out {price.output_per_mtok:>7.2f}", 1)
    print()
    return 0


def print_help():
    """Print help message."""
    print(__doc__)


COMMANDS = {
    "init-db": lambda: cmd_init_db(reset=False),
    "reset-db": lambda: cmd_init_db(reset=True),
    "health": cmd_health,
    "stats": cmd_stats,
    "prices": cmd_prices,
}


def main(argv=None) -> int:
    """Main CLI entry point."""
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] in ("help", "-h", "--help"):
        print_help()
        return 0

    command = COMMANDS.get(argv[0].lower())
    if command is None:
        print(f"Unknown command: {argv[0]}")
        print_help()
        return 1

    try:
        return command()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
