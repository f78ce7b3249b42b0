import argparse
import logging
import sys
from pathlib import Path

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.app_shell.config import ConfigurationError, Settings, load_settings
from src.shell.http.request_context import configure_logging

logger = logging.getLogger("cli")


def get_settings(config_dir: str | None) -> Settings:
    try:
        return load_settings(Path(config_dir) if config_dir else None)
    except ConfigurationError as e:
        logger.critical("Failed to load configuration: %s", e)
        sys.exit(1)


def handle_migrate(settings: Settings) -> None:
    db_path = Path(settings.database.path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    migrator = SQLiteMigrator(str(db_path), settings.database.migrations_dir)
    try:
        applied = migrator.run_migrations()
    except (FileNotFoundError, RuntimeError) as e:
        logger.critical("Migration failed: %s", e)
        sys.exit(1)
    print(f"Applied {len(applied)} migration(s) to {db_path}.")


def handle_serve(settings: Settings) -> None:
    import uvicorn

    from src.api.main import create_app

    handle_migrate(settings)
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.application.host,
        port=settings.application.port,
        log_config=None,
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Letterbox CLI")
    parser.add_argument(
        "--config-dir",
        help="Directory holding base.yaml and <environment>.yaml (default: ./configuration)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # serve
    subparsers.add_parser("serve", help="Migrate, then start the HTTP server")

    args = parser.parse_args(argv)

    # Logging comes up before settings so configuration errors are reported.
    configure_logging()
    settings = get_settings(args.config_dir)
    configure_logging(settings.application.log_level)

    if args.command == "migrate":
        handle_migrate(settings)
    elif args.command == "serve":
        handle_serve(settings)


if __name__ == "__main__":
    main()
