from discord import app_commands

from marketbot.commands.market import setup_market
from marketbot.services.catalog import CatalogCache


def setup_commands(tree: app_commands.CommandTree, catalog_cache: CatalogCache | None = None) -> None:
    setup_market(tree, catalog_cache)
