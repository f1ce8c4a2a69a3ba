import asyncio

import discord

from marketbot.commands import setup_commands
from marketbot.config.runtime import ensure_app_config_defaults, get_app_config
from marketbot.config.settings import BASE_PRICES_PATH, TOKEN, TRANSLATIONS_PATH
from marketbot.db import init_db
from marketbot.services.announcements import build_rotation_embed
from marketbot.services.catalog import CatalogCache, load_base_prices, load_translations
from marketbot.services.market_state import local_today
from marketbot.services.rotation import (
    RotationEngine,
    RotationResult,
    build_rotation_engine,
    perform_rotation,
    rotation_due,
)

AUTO_ROTATE_CHECK_SECONDS = 300


class MarketBot(discord.Client):
    def __init__(self, catalog_cache: CatalogCache | None = None) -> None:
        intents = discord.Intents.default()
        super().__init__(intents=intents)
        self.catalog_cache = catalog_cache
        self.tree = discord.app_commands.CommandTree(self)
        self._synced = False
        self._rotation_task: asyncio.Task | None = None

    async def setup_hook(self) -> None:
        setup_commands(self.tree, self.catalog_cache)

    async def on_ready(self) -> None:
        if self._synced:
            return

        # Sync commands to every guild the bot is currently in.
        for guild in self.guilds:
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)

        self._synced = True
        if self._rotation_task is None:
            self._rotation_task = asyncio.create_task(self._rotation_loop())

    async def _rotation_loop(self) -> None:
        while not self.is_closed():
            try:
                await self._process_auto_rotation()
            except Exception as exc:
                print(f"[rotation] auto-rotation loop error: {exc}")
            await asyncio.sleep(AUTO_ROTATE_CHECK_SECONDS)

    async def _process_auto_rotation(self) -> None:
        result = await asyncio.to_thread(self._auto_rotate_if_due)
        if result is not None:
            await self._announce_rotation(result)

    def _auto_rotate_if_due(self) -> RotationResult | None:
        every_days = int(get_app_config("AUTO_ROTATE_DAYS"))
        if every_days <= 0:
            return None
        timezone_name = str(get_app_config("DISPLAY_TIMEZONE"))

        def due(engine: RotationEngine) -> bool:
            has_state = engine.history.state_path.exists()
            return rotation_due(engine.current_state(), local_today(timezone_name), every_days, has_state=has_state)

        engine = build_rotation_engine(self.catalog_cache)
        if not due(engine):
            return None
        # Re-checked under the rotation lock.
        result = perform_rotation(engine=engine, only_if=due)
        if result is not None:
            print(f"[rotation] auto-rotated {result.changed_count} item(s) every {every_days} day(s).")
        return result

    async def _announce_rotation(self, result: RotationResult) -> None:
        base_prices, translations = await asyncio.to_thread(
            lambda: (load_base_prices(BASE_PRICES_PATH), load_translations(TRANSLATIONS_PATH))
        )
        embed = build_rotation_embed(result.state, base_prices, translations)
        channel_id = int(get_app_config("ANNOUNCEMENT_CHANNEL_ID"))
        for guild in self.guilds:
            channel = await self._pick_announcement_channel(guild, channel_id)
            if channel is None:
                print(f"[announce] no usable channel in guild={guild.id}")
                continue
            try:
                await channel.send(embed=embed)
            except (discord.Forbidden, discord.HTTPException) as exc:
                print(f"[announce] rotation send failed guild={guild.id}: {exc}")

    async def _pick_announcement_channel(
        self,
        guild: discord.Guild,
        preferred_channel_id: int = 0,
    ) -> discord.TextChannel | discord.Thread | None:
        # Explicit config: try this channel first.
        if preferred_channel_id > 0:
            channel = guild.get_channel(preferred_channel_id) or self.get_channel(preferred_channel_id)
            if channel is None:
                try:
                    channel = await guild.fetch_channel(preferred_channel_id)
                except (discord.NotFound, discord.Forbidden, discord.HTTPException):
                    channel = None
            if isinstance(channel, (discord.TextChannel, discord.Thread)) and channel.guild.id == guild.id:
                return channel
            print(
                f"[announce] configured ANNOUNCEMENT_CHANNEL_ID={preferred_channel_id} "
                f"not usable in guild={guild.id}; falling back to auto-pick."
            )

        # Auto mode fallback.
        if guild.system_channel is not None:
            return guild.system_channel

        for channel in guild.text_channels:
            return channel
        return None


def run() -> None:
    if not TOKEN:
        raise SystemExit("Missing bot token: create a TOKEN file or set MARKETBOT_TOKEN.")
    init_db()
    ensure_app_config_defaults()
    bot = MarketBot(catalog_cache=CatalogCache(int(get_app_config("CATALOG_CACHE_TTL"))))
    bot.run(TOKEN)


if __name__ == "__main__":
    run()
