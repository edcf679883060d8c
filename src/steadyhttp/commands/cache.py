"""Cache commands -- inspect and clear the persistent response cache."""

from __future__ import annotations

import typer

from steadyhttp.cache import DiskCacheStore, ResponseCache
from steadyhttp.config import resolve_settings
from steadyhttp.exceptions import SteadyError
from steadyhttp.output import error, format_response, info, success


cache_app = typer.Typer(no_args_is_help=True)


def _open_cache(ctx: typer.Context) -> ResponseCache:
    obj = ctx.obj or {}
    try:
        settings = resolve_settings(obj.get("config_path"))
    except SteadyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    if not settings.cache_enabled:
        return ResponseCache()
    return ResponseCache(DiskCacheStore(settings.resolved_cache_dir()))


@cache_app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show whether the cache is enabled, where it lives and how many entries it holds."""
    cache = _open_cache(ctx)
    try:
        format_response(cache.stats())
    finally:
        cache.close()


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Remove every cached response."""
    cache = _open_cache(ctx)
    try:
        if not cache.enabled:
            info("Cache is disabled.")
            return
        count = cache.clear()
    finally:
        cache.close()
    success(f"Cleared {count} cached response(s).")
