"""
arenarewards/cli.py

Administrative command line for the reward engine.

Commands:
    arenarewards init-db                      Create the schema
    arenarewards close <campaign-id>          Close a campaign, distribute its prize
    arenarewards rewards <campaign-id>        Show a campaign's reward ledger
    arenarewards consistency <user-id>        Basic consistency score (0-2)
    arenarewards consistency <user-id> --advanced

Output is JSON on stdout; errors go to stderr with exit code 1.
"""

import asyncio
import json
import logging
import sys
from typing import Optional

import click

from .config import ConsistencyThresholds, StoreConfig
from .errors import ArenaRewardsError
from .service import CampaignService
from .storage.sql import SQLStore

logger = logging.getLogger("arenarewards.cli")


def setup_logging(verbosity: int) -> None:
    """Configure root logging from a -v count."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _open_store(config: StoreConfig) -> SQLStore:
    return SQLStore.from_config(config)


def _emit(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _fail(exc: ArenaRewardsError) -> None:
    click.echo(
        json.dumps({"error": type(exc).__name__, "message": str(exc)}),
        err=True,
    )
    sys.exit(1)


# ============================================================================
# COMMAND IMPLEMENTATIONS
# ============================================================================

async def cmd_init_db(config: StoreConfig) -> dict:
    """Create all tables."""
    store = _open_store(config)
    try:
        await store.create_all()
        return {"database_url": config.database_url, "initialized": True}
    finally:
        await store.close()


async def cmd_close(config: StoreConfig, campaign_id: int) -> dict:
    """Close a campaign with retries."""
    store = _open_store(config)
    try:
        service = CampaignService(store, config=config)
        result = await service.close_campaign(campaign_id)
        return result.to_dict()
    finally:
        await store.close()


async def cmd_rewards(config: StoreConfig, campaign_id: int) -> dict:
    """Reward ledger of a campaign plus its merkle root."""
    store = _open_store(config)
    try:
        service = CampaignService(store, config=config)
        details = await service.get_campaign_details(campaign_id)
        return {
            "campaignId": campaign_id,
            "status": details["status"],
            "prizeAmount": details["prize_amount"],
            "prizeCurrency": details["prize_currency"],
            "rewards": details["rewards"],
            "ledgerRoot": details["ledger_root"],
        }
    finally:
        await store.close()


async def cmd_consistency(config: StoreConfig, user_id: int, advanced: bool) -> dict:
    """Basic or advanced consistency of a voter."""
    store = _open_store(config)
    try:
        service = CampaignService(
            store,
            thresholds=ConsistencyThresholds.from_env(),
            config=config,
        )
        if advanced:
            profile = await service.calculate_advanced_consistency_score(user_id)
            data = profile.to_dict()
            data["userId"] = user_id
            data["level"] = profile.level.value
            return data
        score = await service.calculate_consistency_score(user_id)
        return {"userId": user_id, "consistencyScore": score}
    finally:
        await store.close()


def _run(coro) -> None:
    try:
        _emit(asyncio.run(coro))
    except ArenaRewardsError as e:
        _fail(e)


# ============================================================================
# CLICK COMMANDS
# ============================================================================

@click.group()
@click.option(
    "--database-url",
    default=None,
    help="SQLAlchemy async URL (overrides ARENA_DATABASE_URL)",
)
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str], verbose: int):
    """Campaign consensus scoring and reward distribution."""
    setup_logging(verbose)
    config = StoreConfig.from_env()
    if database_url:
        config.database_url = database_url
    ctx.obj = config


@cli.command("init-db")
@click.pass_obj
def init_db(config: StoreConfig):
    """Create the database schema."""
    _run(cmd_init_db(config))


@cli.command()
@click.argument("campaign_id", type=int)
@click.pass_obj
def close(config: StoreConfig, campaign_id: int):
    """Close a campaign and distribute its prize pool."""
    _run(cmd_close(config, campaign_id))


@cli.command()
@click.argument("campaign_id", type=int)
@click.pass_obj
def rewards(config: StoreConfig, campaign_id: int):
    """Show the reward ledger of a campaign."""
    _run(cmd_rewards(config, campaign_id))


@cli.command()
@click.argument("user_id", type=int)
@click.option("--advanced", is_flag=True, help="Include bias and timing checks")
@click.pass_obj
def consistency(config: StoreConfig, user_id: int, advanced: bool):
    """Consistency score of a voter."""
    _run(cmd_consistency(config, user_id, advanced))


def main():
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
