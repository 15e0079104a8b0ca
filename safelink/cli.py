"""CLI entry point for Safelink.

Commands:
    safelink update       — refresh catalog and lists, rebuild the index
    safelink check        — classify a URL
    safelink lists        — show the local catalog
    safelink add-list     — register a custom list by URL
    safelink remove-list  — drop a list and its cache
    safelink enable       — activate a list
    safelink disable      — deactivate a list
    safelink trust        — always trust a domain
"""

import asyncio
import logging
import sys

import click

from safelink.config import CATALOG_URL, FETCH_TIMEOUT, STORE_PATH, UPDATE_INTERVAL_HOURS

logger = logging.getLogger("safelink")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--store",
    "store_path",
    default=STORE_PATH,
    show_default=True,
    help="Path to the SQLite settings/cache store.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, store_path: str) -> None:
    """Safelink — classify links against cached trust lists."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["store_path"] = store_path


def _open_store(ctx: click.Context):
    from safelink.storage import KeyValueStore

    return KeyValueStore(ctx.obj["store_path"])


# ------------------------------------------------------------------
# safelink update
# ------------------------------------------------------------------


@cli.command()
@click.option("--force", is_flag=True, help="Ignore the once-a-day update throttle.")
@click.pass_context
def update(ctx: click.Context, force: bool) -> None:
    """Refresh the catalog and all active lists, then rebuild the index."""
    with _open_store(ctx) as store:
        asyncio.run(_update_async(store, force))


async def _update_async(store, force: bool) -> None:
    from safelink.core import SafelinkCore
    from safelink.integrations.fetcher import ListFetcher

    async with ListFetcher(timeout=FETCH_TIMEOUT) as fetcher:
        core = SafelinkCore(
            store,
            fetcher,
            catalog_url=CATALOG_URL,
            update_interval_hours=UPDATE_INTERVAL_HOURS,
        )
        await core.create(force=force)
        index = core.register.get()

    click.echo(f"Trusted domains:   {len(index.trusted.domains)}")
    click.echo(f"Organizations:     {len(index.trusted.orgs)}")
    click.echo(f"Redirect hosts:    {len(index.redirect.redirects)}")
    click.echo(f"Dereferrer rules:  {len(index.redirect.dereferrers)}")
    click.echo(f"Suspicious rules:  {index.suspicious.rule_count}")


# ------------------------------------------------------------------
# safelink check
# ------------------------------------------------------------------


@cli.command()
@click.argument("url")
@click.option(
    "--resolve",
    is_flag=True,
    help="Follow redirect services over the network to classify their target.",
)
@click.pass_context
def check(ctx: click.Context, url: str, resolve: bool) -> None:
    """Classify URL."""
    with _open_store(ctx) as store:
        asyncio.run(_check_async(store, url, resolve))


async def _check_async(store, url: str, resolve: bool) -> None:
    from safelink.core import SafelinkCore
    from safelink.integrations.fetcher import ListFetcher
    from safelink.schemas.domain import DomainType

    async with ListFetcher(timeout=FETCH_TIMEOUT) as fetcher:
        core = SafelinkCore(
            store,
            fetcher,
            catalog_url=CATALOG_URL,
            update_interval_hours=UPDATE_INTERVAL_HOURS,
        )
        await core.create()
        info = await core.find_domain(url)
        _print_info(info)

        if resolve and info.type == DomainType.REDIRECT and not info.dereferrer_target:
            resolution = await core.find_redirect_domain(url)
            if resolution is None:
                click.echo("  resolve: request failed, target unknown")
            elif resolution.not_found:
                click.echo("  resolve: not found (404)")
            elif resolution.invalid:
                click.echo("  resolve: no redirect")
            else:
                click.echo(f"  resolved to {resolution.url}")
                _print_info(resolution.target, indent="    ")


def _print_info(info, indent: str = "") -> None:
    click.echo(f"{indent}{info.domain}: {info.type.value}")
    if info.dereferrer_target:
        click.echo(f"{indent}  target={info.dereferrer_target}")
    if info.similar:
        click.echo(f"{indent}  similar={info.similar.domain} ({info.similar.rating:.0%})")
    for key, value in (info.model_extra or {}).items():
        click.echo(f"{indent}  {key}={value}")


# ------------------------------------------------------------------
# List management
# ------------------------------------------------------------------


@cli.command("lists")
@click.pass_context
def list_lists(ctx: click.Context) -> None:
    """Show all lists in the local catalog."""
    from safelink.updater import Updater

    with _open_store(ctx) as store:
        lists = Updater(store, None, catalog_url=CATALOG_URL).get_lists()

    if not lists:
        click.echo("No lists. Run 'safelink update' first.")
        return
    for list_id, d in sorted(lists.items()):
        state = "off" if d.off else "on "
        title = d.title or d.url
        click.echo(f"[{state}] {list_id:<30} {d.type.value:<10} {d.group:<10} {title}")


@cli.command("add-list")
@click.argument("url")
@click.pass_context
def add_list(ctx: click.Context, url: str) -> None:
    """Register a custom list from URL."""
    with _open_store(ctx) as store:
        list_id = asyncio.run(_add_list_async(store, url))
    if list_id is None:
        click.echo(f"Error: Could not add list from {url} (see log for details)", err=True)
        sys.exit(1)
    click.echo(f"Added list {list_id}")


async def _add_list_async(store, url: str) -> str | None:
    from safelink.integrations.fetcher import ListFetcher
    from safelink.updater import Updater

    async with ListFetcher(timeout=FETCH_TIMEOUT) as fetcher:
        return await Updater(store, fetcher, catalog_url=CATALOG_URL).add_user_list(url)


@cli.command("remove-list")
@click.argument("list_id")
@click.pass_context
def remove_list(ctx: click.Context, list_id: str) -> None:
    """Remove LIST_ID and its cached content."""
    from safelink.updater import Updater

    with _open_store(ctx) as store:
        removed = Updater(store, None, catalog_url=CATALOG_URL).remove_list(list_id)
    if not removed:
        click.echo(f"Error: No list with id {list_id}", err=True)
        sys.exit(1)
    click.echo(f"Removed list {list_id}")


def _set_active(ctx: click.Context, list_id: str, active: bool) -> None:
    from safelink.updater import Updater

    with _open_store(ctx) as store:
        found = Updater(store, None, catalog_url=CATALOG_URL).set_list_active(list_id, active)
    if not found:
        click.echo(f"Error: No list with id {list_id}", err=True)
        sys.exit(1)
    click.echo(f"{'Enabled' if active else 'Disabled'} list {list_id}")


@cli.command()
@click.argument("list_id")
@click.pass_context
def enable(ctx: click.Context, list_id: str) -> None:
    """Activate LIST_ID."""
    _set_active(ctx, list_id, True)


@cli.command()
@click.argument("list_id")
@click.pass_context
def disable(ctx: click.Context, list_id: str) -> None:
    """Deactivate LIST_ID."""
    _set_active(ctx, list_id, False)


# ------------------------------------------------------------------
# safelink trust
# ------------------------------------------------------------------


@cli.command()
@click.argument("domain")
@click.pass_context
def trust(ctx: click.Context, domain: str) -> None:
    """Always classify DOMAIN as custom-trusted."""
    from safelink.preferences import Preferences

    with _open_store(ctx) as store:
        Preferences(store).trust_unknown(domain)
    click.echo(f"Trusting {domain}")


if __name__ == "__main__":
    cli()
