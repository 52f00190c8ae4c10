import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Dict, Optional, Set

import discord
from discord import app_commands
from discord.ext import commands

from .config_manager import ConfigManager
from .game_controller import RIDDLES_EXHAUSTED_MESSAGE, GameController, GamePhase
from .models import Era, Feedback, GameSession
from .riddle_bank import RiddleBank
from .riddle_provider import OllamaRiddleProvider, RiddleProvider

logger = logging.getLogger(__name__)

OPTION_EMOJIS = ["1️⃣", "2️⃣", "3️⃣", "4️⃣"]

COLOR_NEUTRAL = 0xc19a6b
COLOR_CORRECT = 0x00ff00
COLOR_INCORRECT = 0xff0000
COLOR_INFO = 0x6699ff


def setup_logging(level: int = logging.INFO, log_directory: str = "logs") -> logging.Logger:
    """Set up console, file and error-only logging."""
    logs_dir = Path(log_directory)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),  # File output
        ]
    )

    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s\n%(exc_info)s'
    ))
    logging.getLogger().addHandler(error_handler)

    # Reduce library noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


def create_provider(config_manager: ConfigManager) -> RiddleProvider:
    """Build the riddle provider selected in the configuration."""
    if config_manager.get_provider_type() == "bank":
        bank = RiddleBank(config_manager.get_riddle_directory())
        bank.load_riddle_files()
        return bank

    return OllamaRiddleProvider(
        base_url=config_manager.get_ollama_base_url(),
        model=config_manager.get_ollama_model(),
        temperature=config_manager.get_temperature(),
        request_timeout=config_manager.get_game_settings().provider_timeout
    )


def build_riddle_embed(controller: GameController) -> discord.Embed:
    """
    Render the current game state as an embed.

    Args:
        controller: Game whose state is rendered

    Returns:
        Embed describing the riddle, feedback, score and rank
    """
    state = controller.get_state()
    phase = controller.get_phase()
    riddle = state.current_riddle

    if riddle is None:
        if phase is GamePhase.FETCHING_RIDDLE:
            embed = discord.Embed(title="⏳ Preparing the next riddle...", color=COLOR_NEUTRAL)
        elif state.last_error == RIDDLES_EXHAUSTED_MESSAGE:
            embed = discord.Embed(
                title="🏁 Era Complete",
                description=f"{state.last_error}\nUse `/start` to choose another era or `/reset` to start over.",
                color=COLOR_INFO
            )
        elif state.last_error:
            embed = discord.Embed(
                title="❌ Riddle Unavailable",
                description=f"{state.last_error}\nUse `/retry` to try again or `/reset` to pick another era.",
                color=COLOR_INCORRECT
            )
        else:
            embed = discord.Embed(
                title="📜 Egyptian History Riddles",
                description="Choose an era with `/start` to receive your first riddle.",
                color=COLOR_NEUTRAL
            )
    else:
        if state.feedback is Feedback.CORRECT:
            color = COLOR_CORRECT
        elif state.feedback is Feedback.INCORRECT:
            color = COLOR_INCORRECT
        else:
            color = COLOR_NEUTRAL

        embed = discord.Embed(title=f"📜 {riddle.era.label}", description=riddle.question, color=color)

        if state.feedback is Feedback.CORRECT:
            embed.add_field(name="✅ Well done! Exact answer", value=f"**{riddle.answer}**", inline=False)
            if state.show_fun_fact:
                embed.add_field(name="🏺 Historical fact", value=f"*{riddle.fun_fact}*", inline=False)
            embed.add_field(name="➡️ Next", value="Use `/next` for another riddle", inline=False)
        else:
            lines = []
            for emoji, option in zip(OPTION_EMOJIS, riddle.options):
                marker = ""
                if option == state.selected_option:
                    marker = " ⏳" if state.loading else " ❌"
                lines.append(f"{emoji} {option}{marker}")
            embed.add_field(name="Options", value="\n".join(lines), inline=False)

            hint = controller.current_hint()
            if hint:
                embed.add_field(name="💡 A hint to help you", value=hint, inline=False)

            if state.feedback is Feedback.INCORRECT:
                embed.add_field(name="❌ Not quite", value="Try again in a moment", inline=False)

    rank = controller.rank()
    embed.set_footer(text=f"Score: {state.score} • {rank.title} • Solved: {len(state.history)}")
    return embed


class RiddleBot(commands.Bot):
    """Discord bot running one riddle game per channel"""

    def __init__(self, config=None, provider: Optional[RiddleProvider] = None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}
        self.config_manager = ConfigManager()
        self.provider: Optional[RiddleProvider] = provider

        self._games: Dict[int, GameController] = {}
        self._last_states: Dict[int, GameSession] = {}
        self._riddle_messages: Dict[int, discord.Message] = {}
        self._background_tasks: Set[asyncio.Task] = set()

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            rejected = self.config_manager.apply_config(self.app_config)
            for message in rejected:
                logger.warning(f"Configuration value rejected: {message}")

            validation = self.config_manager.validate_settings()
            for issue in validation['issues']:
                logger.warning(f"Configuration issue: {issue}")

            if self.provider is None:
                self.provider = create_provider(self.config_manager)

            if isinstance(self.provider, RiddleBank):
                self.log_riddle_bank_summary(self.provider)

            await self.setup_commands()
            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def log_riddle_bank_summary(self, bank: RiddleBank) -> None:
        """Log how many riddles the bank loaded and any files it skipped."""
        summary = bank.get_loading_summary()
        logger.info(
            f"Riddle bank loaded {summary['total_riddles']} riddles from {summary['riddle_directory']}",
            extra={
                'event_type': 'riddle_bank_loaded',
                'riddles_per_era': summary['riddles_per_era'],
                'error_count': summary['error_count'],
                'timestamp': time.time()
            }
        )
        for error in summary['errors']:
            logger.warning(f"Riddle bank loading error: {error}")

    def get_riddle_bank_text(self) -> Optional[str]:
        """Per-era riddle counts when playing from the riddle bank."""
        if not isinstance(self.provider, RiddleBank):
            return None
        summary = self.provider.get_loading_summary()
        lines = [
            f"{Era(value).label}: {count} riddles"
            for value, count in summary['riddles_per_era'].items()
        ]
        if summary['has_errors']:
            lines.append(f"⚠️ {summary['error_count']} riddles or files skipped")
        return "\n".join(lines)

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="start", description="Choose an era and get your first riddle")
        @app_commands.describe(era="Historical era to play")
        @app_commands.choices(era=[app_commands.Choice(name=era.label, value=era.value) for era in Era])
        async def start_command(interaction: discord.Interaction, era: app_commands.Choice[str]):
            await self.handle_start(interaction, era.value)

        @self.tree.command(name="answer", description="Answer the current riddle")
        @app_commands.describe(option="Number of the option (1-4)")
        async def answer_command(interaction: discord.Interaction, option: app_commands.Range[int, 1, 4]):
            await self.handle_answer(interaction, option)

        @self.tree.command(name="next", description="Get the next riddle from the same era")
        async def next_command(interaction: discord.Interaction):
            await self.handle_next(interaction)

        @self.tree.command(name="retry", description="Try loading the riddle again")
        async def retry_command(interaction: discord.Interaction):
            await self.handle_retry(interaction)

        @self.tree.command(name="reset", description="Start over and pick a new era")
        async def reset_command(interaction: discord.Interaction):
            await self.handle_reset(interaction)

        @self.tree.command(name="status", description="Show your score, rank and progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}, in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.provider is not None:
            await self.provider.close()
        await super().close()

    # Game registry

    def get_game(self, channel_id: int) -> GameController:
        """
        Get the game for a channel, creating it on first use.

        Args:
            channel_id: Discord channel identifier

        Returns:
            The channel's GameController
        """
        game = self._games.get(channel_id)
        if game is None:
            game = GameController(
                self.provider,
                settings=self.config_manager.get_game_settings(),
                channel_id=channel_id
            )
            game.subscribe(lambda state: self._on_state_change(channel_id, state))
            self._games[channel_id] = game
            logger.info(f"Created game for channel {channel_id}")
        return game

    def _on_state_change(self, channel_id: int, state: GameSession) -> None:
        previous = self._last_states.get(channel_id)
        self._last_states[channel_id] = state

        cooldown_finished = (
            previous is not None
            and previous.feedback is Feedback.INCORRECT
            and state.feedback is Feedback.NEUTRAL
            and not state.loading
            and state.current_riddle is not None
            and state.current_riddle == previous.current_riddle
        )
        if cooldown_finished and channel_id in self._riddle_messages:
            task = asyncio.get_running_loop().create_task(self._refresh_riddle_message(channel_id))
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)

    async def _refresh_riddle_message(self, channel_id: int) -> None:
        message = self._riddle_messages.get(channel_id)
        game = self._games.get(channel_id)
        if message is None or game is None:
            return
        try:
            await message.edit(embed=build_riddle_embed(game))
        except discord.HTTPException as e:
            logger.warning(f"Failed to refresh riddle message for channel {channel_id}: {e}")

    async def _send_game_embed(self, interaction: discord.Interaction, game: GameController) -> None:
        message = await interaction.followup.send(embed=build_riddle_embed(game), wait=True)
        self._riddle_messages[interaction.channel_id] = message

    # Command handlers

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="📜 Egyptian History Riddles",
                description="Pick an era and solve AI-generated riddles about the history of Egypt.",
                color=COLOR_NEUTRAL
            )
            help_embed.add_field(
                name="🎮 Game Commands",
                value=(
                    "`/start <era>` - Choose an era and get your first riddle\n"
                    "`/answer <1-4>` - Answer the current riddle\n"
                    "`/next` - Next riddle from the same era\n"
                    "`/retry` - Retry loading a riddle that failed\n"
                    "`/reset` - Start over with a score of zero\n"
                    "`/status` - Show score, rank and progress"
                ),
                inline=False
            )
            help_embed.add_field(
                name="🏆 Scoring",
                value=(
                    "A first-try answer earns 10 points, each wrong attempt costs 3 (minimum 2).\n"
                    "A hint appears after every wrong attempt.\n"
                    "50 points makes you a Historical Researcher, 100 an Egyptian History Expert."
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            bank_text = self.get_riddle_bank_text()
            if bank_text:
                help_embed.add_field(name="📚 Riddle Bank", value=bank_text, inline=False)
            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help", "❌ Help Error")

    async def handle_start(self, interaction: discord.Interaction, era_value: str):
        """Handle /start command"""
        era = Era.from_text(era_value)
        if era is None:
            await self.send_error_response(interaction, f"Unknown era: {era_value}", "❌ Invalid Era")
            return

        game = self.get_game(interaction.channel_id)
        phase = game.get_phase()
        if phase not in (GamePhase.NO_ERA_SELECTED, GamePhase.IDLE):
            await self.send_warning_response(
                interaction,
                "A riddle is already in play in this channel. Use `/reset` to choose another era."
            )
            return

        try:
            await interaction.response.defer(thinking=True)
            await game.select_era(era)
            await self._send_game_embed(interaction, game)
        except discord.HTTPException as e:
            logger.error(f"Error in start command: {e}")
            await self.send_error_response(interaction, "Failed to show the riddle", "❌ Start Error")

    async def handle_answer(self, interaction: discord.Interaction, option_number: int):
        """Handle /answer command"""
        game = self.get_game(interaction.channel_id)
        state = game.get_state()

        if state.current_riddle is None:
            await self.send_warning_response(interaction, "There is no riddle to answer. Use `/start` to begin.")
            return
        if state.loading:
            await self.send_warning_response(interaction, "Please wait, the previous answer is still being checked.")
            return
        if state.feedback is Feedback.CORRECT:
            await self.send_info_response(interaction, "This riddle is already solved. Use `/next` for another one.")
            return
        if not 1 <= option_number <= len(state.current_riddle.options):
            await self.send_error_response(
                interaction,
                f"Choose an option between 1 and {len(state.current_riddle.options)}",
                "❌ Invalid Option"
            )
            return

        option = state.current_riddle.options[option_number - 1]
        try:
            await interaction.response.defer(thinking=True)
            await game.select_option(option)
            await self._send_game_embed(interaction, game)
        except discord.HTTPException as e:
            logger.error(f"Error in answer command: {e}")
            await self.send_error_response(interaction, "Failed to check your answer", "❌ Answer Error")

    async def handle_next(self, interaction: discord.Interaction):
        """Handle /next command"""
        game = self.get_game(interaction.channel_id)
        if game.get_phase() is not GamePhase.CORRECT:
            await self.send_warning_response(interaction, "Solve the current riddle first, or use `/start` to begin.")
            return

        try:
            await interaction.response.defer(thinking=True)
            await game.next_riddle()
            await self._send_game_embed(interaction, game)
        except discord.HTTPException as e:
            logger.error(f"Error in next command: {e}")
            await self.send_error_response(interaction, "Failed to show the next riddle", "❌ Next Riddle Error")

    async def handle_retry(self, interaction: discord.Interaction):
        """Handle /retry command"""
        game = self.get_game(interaction.channel_id)
        if game.get_phase() is not GamePhase.IDLE:
            await self.send_info_response(interaction, "There is nothing to retry right now.")
            return
        if game.get_state().last_error == RIDDLES_EXHAUSTED_MESSAGE:
            await self.send_info_response(
                interaction,
                "Every riddle for this era has been asked. Use `/start` to choose another era."
            )
            return

        try:
            await interaction.response.defer(thinking=True)
            await game.retry()
            await self._send_game_embed(interaction, game)
        except discord.HTTPException as e:
            logger.error(f"Error in retry command: {e}")
            await self.send_error_response(interaction, "Failed to show the riddle", "❌ Retry Error")

    async def handle_reset(self, interaction: discord.Interaction):
        """Handle /reset command"""
        game = self.get_game(interaction.channel_id)
        final_score = game.get_state().score
        game.reset()
        self._riddle_messages.pop(interaction.channel_id, None)
        await self.send_info_response(
            interaction,
            f"Game reset. Your final score was {final_score}. Use `/start` to choose an era.",
            "🔄 Game Reset"
        )

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            progress = self.get_game(interaction.channel_id).get_session_progress()
            embed = discord.Embed(title="📊 Riddle Status", color=COLOR_INFO)
            embed.add_field(name="Era", value=progress['era'] or "Not selected", inline=True)
            embed.add_field(name="Score", value=str(progress['score']), inline=True)
            embed.add_field(name="Title", value=progress['rank_title'], inline=True)
            embed.add_field(name="Solved", value=f"{progress['solved']} riddles solved", inline=True)
            embed.add_field(name="Attempts on this riddle", value=str(progress['attempts']), inline=True)
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            logger.error(f"Error in status command: {e}")
            await self.send_error_response(interaction, "Failed to get game status", "❌ Status Error")

    async def _send_response(self, interaction: discord.Interaction, embed: discord.Embed) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        embed = discord.Embed(title=title, description=message, color=COLOR_INCORRECT)
        embed.set_footer(text="If this error persists, try using /help for available commands")
        try:
            await self._send_response(interaction, embed)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            await self._send_response(interaction, discord.Embed(title=title, description=message, color=COLOR_INFO))
        except discord.HTTPException:
            logger.error("Failed to send info response to user")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        try:
            await self._send_response(interaction, discord.Embed(title=title, description=message, color=0xffaa00))
        except discord.HTTPException:
            logger.error("Failed to send warning response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = RiddleBot(config)

    try:
        logger.info("Starting Egyptian History Riddle Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
