from __future__ import annotations

import argparse
import copy
import os

import anyio
import uvicorn
import uvicorn.config

from quonitor.core.config.settings import Settings, get_settings


def _build_log_config(settings: Settings) -> dict:
    # Uvicorn's default LOGGING_CONFIG does not attach handlers to the `quonitor.*` logger namespace.
    config = copy.deepcopy(uvicorn.config.LOGGING_CONFIG)
    loggers = config.setdefault("loggers", {})
    loggers["quonitor"] = {
        "handlers": ["default"],
        "level": settings.log_level,
        "propagate": False,
    }
    return config


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the quonitor API server.")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8765")))

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("refresh", help="Fetch every account once and print a summary.")
    cleanup = subparsers.add_parser("cleanup", help="Delete history older than the retention window.")
    cleanup.add_argument(
        "--days",
        type=int,
        default=None,
        help="Retention window in days (default: the data_retention_days setting).",
    )
    return parser.parse_args(argv)


def _format_percent(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.1f}%"


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()

    if args.command is None:
        uvicorn.run(
            "quonitor.main:app",
            host=args.host,
            port=args.port,
            log_config=_build_log_config(settings),
            # Controlled via `QUONITOR_ACCESS_LOG_ENABLED`.
            access_log=settings.access_log_enabled,
        )
        return

    if args.command == "refresh":
        from quonitor.core.clients.http import close_http_client, init_http_client
        from quonitor.db.session import close_db, init_db
        from quonitor.dependencies import quota_repo_context
        from quonitor.runtime import build_runtime

        async def _run() -> None:
            try:
                await init_db()
                await init_http_client()
                runtime = await build_runtime(quota_repo_context)
                try:
                    quotas = await runtime.scheduler.run_fetch_cycle(trigger="cli")
                finally:
                    await runtime.shutdown()
                for quota in quotas:
                    print(
                        f"account_id={quota.account_id} tokens_in={quota.tokens_input} "
                        f"tokens_out={quota.tokens_output} cost_usd={quota.cost_usd} "
                        f"usage={_format_percent(quota.usage_percent())}"
                    )
                print(f"refreshed={len(quotas)}")
            finally:
                try:
                    await close_http_client()
                finally:
                    await close_db()

        anyio.run(_run)
        return

    if args.command == "cleanup":
        if args.days is not None and args.days <= 0:
            raise SystemExit("--days must be > 0")

        from quonitor.db.session import close_db, init_db
        from quonitor.dependencies import quota_repo_context
        from quonitor.modules.quotas.service import DEFAULT_RETENTION_DAYS
        from quonitor.modules.settings.repository import DATA_RETENTION_DAYS_KEY

        async def _run() -> None:
            try:
                await init_db()
                async with quota_repo_context() as repos:
                    days = args.days
                    if days is None:
                        stored = await repos.settings.get_int(DATA_RETENTION_DAYS_KEY)
                        days = stored if stored is not None and stored > 0 else DEFAULT_RETENTION_DAYS
                    snapshots, model_rows = await repos.history.cleanup_older_than(days)
                print(f"days={days} snapshots_deleted={snapshots} model_usage_deleted={model_rows}")
            finally:
                await close_db()

        anyio.run(_run)
        return

    raise SystemExit(f"Unknown command: {args.command}")


if __name__ == "__main__":
    main()
