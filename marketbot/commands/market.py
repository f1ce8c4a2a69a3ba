import asyncio

from discord import Interaction, app_commands

from marketbot.commands.rotation_graphs import build_rotation_chart
from marketbot.config.settings import BASE_PRICES_PATH, TRANSLATIONS_PATH
from marketbot.core.errors import MarketError, NoHistoryError
from marketbot.db import get_rotation_log
from marketbot.services.announcements import build_patch_notes, build_rotation_embed
from marketbot.services.catalog import CatalogCache, load_base_prices, load_translations
from marketbot.services.rotation import build_rotation_engine, perform_revert, perform_rotation

_DISCORD_MESSAGE_LIMIT = 2000


def _load_tables() -> tuple[dict, dict]:
    return load_base_prices(BASE_PRICES_PATH), load_translations(TRANSLATIONS_PATH)


def _format_log_lines(rows: list[dict]) -> list[str]:
    lines: list[str] = []
    for row in rows:
        actor_id = int(row.get("actor_id", 0) or 0)
        actor = f"<@{actor_id}>" if actor_id > 0 else "auto"
        created = str(row.get("created_at", ""))[:16].replace("T", " ")
        lines.append(
            f"`{created}` **{row.get('action', '?')}** ({row.get('changed_count', 0)} items, "
            f"as of {row.get('as_of', '?')}) by {actor}"
        )
    return lines


def setup_market(tree: app_commands.CommandTree, catalog_cache: CatalogCache | None = None) -> None:
    @tree.command(name="market-rotate", description="Admin: rotate the dynamic market (buff -> reset).")
    @app_commands.checks.has_permissions(administrator=True)
    async def market_rotate(interaction: Interaction) -> None:
        await interaction.response.defer(thinking=True)
        try:
            engine = await asyncio.to_thread(build_rotation_engine, catalog_cache)
            result = await asyncio.to_thread(perform_rotation, actor_id=interaction.user.id, engine=engine)
            base_prices, translations = await asyncio.to_thread(_load_tables)
        except (MarketError, OSError) as exc:
            print(f"[market] rotation failed: {exc}")
            await interaction.followup.send(f"❌ Error: {exc}")
            return

        embed = build_rotation_embed(result.state, base_prices, translations)
        await interaction.followup.send(
            content=f"Rotated **{result.changed_count}** item(s).",
            embed=embed,
        )

    @tree.command(name="market-revert", description="Admin: undo the last market rotation.")
    @app_commands.checks.has_permissions(administrator=True)
    async def market_revert(interaction: Interaction) -> None:
        await interaction.response.defer(thinking=True)
        try:
            engine = await asyncio.to_thread(build_rotation_engine, catalog_cache)
            state = await asyncio.to_thread(perform_revert, actor_id=interaction.user.id, engine=engine)
            base_prices, translations = await asyncio.to_thread(_load_tables)
        except NoHistoryError:
            await interaction.followup.send("Nothing to revert: no previous rotation is stored.")
            return
        except (MarketError, OSError) as exc:
            print(f"[market] revert failed: {exc}")
            await interaction.followup.send(f"❌ Error: {exc}")
            return

        embed = build_rotation_embed(state, base_prices, translations, title="↩️ Market Reverted")
        await interaction.followup.send(embed=embed)

    @tree.command(name="market-status", description="Show the current market rotation.")
    async def market_status(interaction: Interaction) -> None:
        try:
            engine = await asyncio.to_thread(build_rotation_engine, catalog_cache)
            state = await asyncio.to_thread(engine.current_state)
            has_previous = await asyncio.to_thread(engine.history.has_previous)
            base_prices, translations = await asyncio.to_thread(_load_tables)
            log_rows = await asyncio.to_thread(get_rotation_log, 5)
        except (MarketError, OSError) as exc:
            await interaction.response.send_message(f"❌ Error: {exc}", ephemeral=True)
            return

        embed = build_rotation_embed(state, base_prices, translations, title="📊 Current Market")
        log_lines = _format_log_lines(log_rows)
        if log_lines:
            embed.add_field(name="History", value="\n".join(log_lines), inline=False)
        embed.add_field(
            name="Revert",
            value="Available" if has_previous else "Not available",
            inline=True,
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @tree.command(name="market-publish", description="Publish the rotation patch notes.")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def market_publish(interaction: Interaction) -> None:
        await interaction.response.defer(thinking=True)
        try:
            engine = await asyncio.to_thread(build_rotation_engine, catalog_cache)
            state = await asyncio.to_thread(engine.current_state)
            base_prices, translations = await asyncio.to_thread(_load_tables)
        except (MarketError, OSError) as exc:
            await interaction.followup.send(f"❌ Error: {exc}")
            return

        if not state.active and not state.retired:
            await interaction.followup.send("❌ No market data found. Run a rotation first.")
            return

        notes = build_patch_notes(state, base_prices, translations)
        if len(notes) > _DISCORD_MESSAGE_LIMIT:
            notes = notes[: _DISCORD_MESSAGE_LIMIT - 1] + "…"
        chart = await asyncio.to_thread(build_rotation_chart, state, base_prices, translations)
        if chart is None:
            await interaction.followup.send(content=notes)
        else:
            await interaction.followup.send(content=notes, file=chart)
