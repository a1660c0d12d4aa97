"""Telegram bot: reminder delivery, reports and command handlers."""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Callable

from telegram import Bot, BotCommand, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import Application, CommandHandler, ContextTypes
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import Config
from ..database.repository import Repository
from ..hydration.errors import HydrationError
from ..hydration.models import ActivityLevel, FluidType, WeatherSignal, WorkoutSignal, parse_minutes
from ..hydration.reminders import ReminderTime, reminder_message
from ..hydration.store import HydrationStore, IntakeResult
from ..hydration.units import UnitSystem, format_volume, to_kg, to_ml
from .formatters import (
    format_achievements,
    format_error_message,
    format_goal,
    format_help_message,
    format_intake_logged,
    format_quests,
    format_reminder,
    format_status,
    format_today,
    format_weekly_report,
)

logger = logging.getLogger(__name__)

# Rate limiting: max 1 command per N seconds per chat
_RATE_LIMIT_SECONDS = 2
_last_command_time: dict[int, float] = {}

_DEFAULT_SIP_ML = 250.0

_FLUID_ALIASES = {
    "agua": FluidType.WATER, "água": FluidType.WATER,
    "gas": FluidType.SPARKLING_WATER, "gás": FluidType.SPARKLING_WATER, "com-gas": FluidType.SPARKLING_WATER,
    "cha": FluidType.TEA, "chá": FluidType.TEA,
    "cafe": FluidType.COFFEE, "café": FluidType.COFFEE,
    "sumo": FluidType.JUICE,
    "leite": FluidType.MILK,
    "isotonica": FluidType.SPORTS_DRINK, "isotónica": FluidType.SPORTS_DRINK,
}

_ACTIVITY_ALIASES = {
    "calmo": ActivityLevel.CHILL, "chill": ActivityLevel.CHILL,
    "regular": ActivityLevel.STEADY, "steady": ActivityLevel.STEADY,
    "intenso": ActivityLevel.INTENSE, "intense": ActivityLevel.INTENSE,
}

_ON_VALUES = ("on", "sim", "ligar", "ligado", "1", "true")
_OFF_VALUES = ("off", "nao", "não", "desligar", "desligado", "0", "false")


def _is_rate_limited(chat_id: int) -> bool:
    now = time.monotonic()
    last = _last_command_time.get(chat_id, 0.0)
    if now - last < _RATE_LIMIT_SECONDS:
        return True
    _last_command_time[chat_id] = now
    return False


def _on_send_retry(retry_state) -> None:
    logger.warning("Telegram send attempt %d failed: %s", retry_state.attempt_number, retry_state.outcome.exception())


def _parse_number(raw: str) -> float:
    return float(raw.replace(",", "."))


def _parse_switch(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _ON_VALUES:
        return True
    if value in _OFF_VALUES:
        return False
    raise ValueError(f"expected on/off, got {raw!r}")


def parse_profile_change(field: str, raw: str, unit_system: UnitSystem) -> dict[str, Any]:
    """Translate a '/perfil <campo> <valor>' pair into HydrationStore.update_profile kwargs.

    Raises:
        ValueError: If the field is unknown or the value cannot be parsed.
    """
    field = field.strip().lower()
    if field == "peso":
        return {"weight_kg": to_kg(_parse_number(raw), unit_system)}
    if field == "atividade":
        level = _ACTIVITY_ALIASES.get(raw.strip().lower())
        if level is None:
            raise ValueError("atividade deve ser calmo, regular ou intenso")
        return {"activity_level": level}
    if field == "meta":
        if raw.strip().lower() in _OFF_VALUES + ("auto",):
            return {"custom_goal_ml": None}
        return {"custom_goal_ml": to_ml(_parse_number(raw), unit_system)}
    if field == "acordar":
        return {"wake_minutes": parse_minutes(raw)}
    if field == "dormir":
        return {"sleep_minutes": parse_minutes(raw)}
    if field == "lembretes":
        if raw.strip().lower() in _OFF_VALUES:
            return {"reminders_enabled": False}
        if raw.strip().lower() in _ON_VALUES:
            return {"reminders_enabled": True}
        return {"reminder_count": int(raw), "reminders_enabled": True}
    if field == "inteligente":
        return {"smart_reminders_enabled": _parse_switch(raw)}
    if field == "clima":
        return {"prefers_weather_goal": _parse_switch(raw)}
    if field == "saude":
        return {"prefers_health_kit": _parse_switch(raw)}
    if field == "unidades":
        value = raw.strip().lower()
        if value in ("metrico", "métrico", "metric", "ml"):
            return {"unit_system": UnitSystem.METRIC}
        if value in ("imperial", "oz"):
            return {"unit_system": UnitSystem.IMPERIAL}
        raise ValueError("unidades deve ser metrico ou imperial")
    if field == "nome":
        return {"name": raw.strip()}
    raise ValueError(f"campo desconhecido: {field}")


class TelegramBot:
    """Wraps python-telegram-bot for sending messages and handling commands.

    Args:
        config: Application configuration.
        store: The hydration store commands act on.
        repository: Used for status info and the reminder log.
        on_change: Called after any command that changes intake or profile,
            so reminders can be replanned.
    """

    def __init__(
        self,
        config: Config,
        store: HydrationStore,
        repository: Repository,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._repo = repository
        self._chat_id = int(config.telegram_chat_id)
        self._on_change = on_change
        self._app: Application | None = None

    def set_on_change(self, callback: Callable[[], None] | None) -> None:
        self._on_change = callback

    # ------------------------------------------------------------------ #
    # Sending                                                               #
    # ------------------------------------------------------------------ #

    @retry(
        retry=retry_if_exception_type(TelegramError),
        stop=stop_after_attempt(5),
        wait=wait_exponential(multiplier=1, min=2, max=60),
        before_sleep=_on_send_retry,
        reraise=True,
    )
    async def _send(self, text: str, chat_id: int | None = None) -> None:
        """Send a Markdown message to the configured chat."""
        bot = Bot(token=self._config.telegram_bot_token)
        await bot.send_message(
            chat_id=chat_id or self._chat_id,
            text=text,
            parse_mode=ParseMode.MARKDOWN,
        )

    async def send_reminder(self, reminder: ReminderTime) -> None:
        """Send a reminder with the current progress towards today's goal."""
        goal_ml = self._store.daily_goal().total_ml
        total_ml = self._store.today_total()
        progress = total_ml / goal_ml if goal_ml else 0.0
        text = format_reminder(
            reminder_message(progress, reminder.index),
            total_ml,
            goal_ml,
            self._store.profile.unit_system,
        )
        await self._send(text)
        logger.info("Reminder %d (%s) sent", reminder.index, reminder.label)

    async def send_weekly_report(self, summary: dict[str, Any], insights: list[str] | None = None) -> None:
        text = format_weekly_report(summary, self._store.state, self._store.profile.unit_system, insights)
        await self._send(text)
        logger.info("Weekly report sent")

    async def send_text(self, text: str) -> None:
        await self._send(text)

    async def send_error(self, context: str, error: Exception) -> None:
        """Send an error notification to the configured chat."""
        try:
            await self._send(format_error_message(context, error))
        except Exception as exc:
            logger.error("Failed to send error notification: %s", exc)

    async def send_image(self, image_bytes: bytes, caption: str | None = None) -> None:
        """Send a photo (e.g. chart) to the configured chat.

        Args:
            image_bytes: Raw PNG bytes.
            caption: Optional caption for the image.
        """
        bot = Bot(token=self._config.telegram_bot_token)
        await bot.send_photo(
            chat_id=self._chat_id,
            photo=image_bytes,
            caption=caption,
            parse_mode=ParseMode.MARKDOWN,
        )

    # ------------------------------------------------------------------ #
    # Command handlers                                                      #
    # ------------------------------------------------------------------ #

    def _auth_check(self, update: Update) -> bool:
        """Return True if the message is from the authorized chat."""
        if update.effective_chat is None:
            return False
        return update.effective_chat.id == self._chat_id

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception as exc:
            logger.error("Reminder replanning after change failed: %s", exc, exc_info=True)

    async def _reply_intake(self, update: Update, result: IntakeResult) -> None:
        text = format_intake_logged(
            result.entry,
            self._store.today_total(),
            result.goal.total_ml,
            result.completed_quests,
            result.unlocked,
            self._store.profile.unit_system,
        )
        await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN)

    async def _cmd_agua(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/agua [quantidade] [bebida] - log a drink (default 250 ml of water)."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        args = context.args or []
        unit_system = self._store.profile.unit_system
        fluid = FluidType.WATER
        try:
            if args:
                amount = _parse_number(args[0])
            else:
                amount = _DEFAULT_SIP_ML if unit_system is UnitSystem.METRIC else 8.0
            if len(args) > 1:
                fluid = _FLUID_ALIASES.get(args[1].lower())
                if fluid is None:
                    await update.message.reply_text(
                        "Bebida desconhecida. Usa: agua, gas, cha, cafe, sumo, leite, isotonica."
                    )
                    return
        except ValueError:
            await update.message.reply_text("Quantidade inválida. Ex: /agua 330 ou /agua 250 cha")
            return

        try:
            if fluid is FluidType.WATER:
                result = self._store.quick_add(to_ml(amount, unit_system))
            else:
                result = self._store.add_intake(amount, fluid_type=fluid)
        except HydrationError as exc:
            await update.message.reply_text(format_error_message("registo", exc), parse_mode=ParseMode.MARKDOWN)
            return
        await self._reply_intake(update, result)
        self._changed()

    async def _cmd_hoje(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/hoje - today's progress, entries and quests."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        today = date.today()
        text = format_today(
            self._store.daily_goal(),
            self._store.today_total(),
            self._store.ledger.entries_on(today),
            self._store.today_quests(),
            self._store.state,
            self._store.profile.unit_system,
            day=today,
        )
        await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN)

    async def _cmd_missoes(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        text = format_quests(self._store.today_quests(), self._store.profile.unit_system)
        await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN)

    async def _cmd_conquistas(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        await update.message.reply_text(format_achievements(self._store.state), parse_mode=ParseMode.MARKDOWN)

    async def _cmd_semana(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/semana - last 7 days report and chart."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        from ..hydration.insights import generate_insights, weekly_summary
        from ..utils.charts import generate_weekly_chart

        goal_ml = self._store.daily_goal().total_ml
        summary = weekly_summary(self._store.ledger, goal_ml, date.today())
        if not summary:
            await update.message.reply_text("Sem registos nos últimos 7 dias.")
            return
        insights = generate_insights(summary, self._store.state)
        text = format_weekly_report(summary, self._store.state, self._store.profile.unit_system, insights)
        await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN)
        chart = generate_weekly_chart(summary["days"], goal_ml)
        if chart:
            await update.message.reply_photo(photo=chart)

    async def _cmd_objetivo(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/objetivo - goal breakdown and profile."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        text = format_goal(self._store.daily_goal(), self._store.profile)
        await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN)

    async def _cmd_perfil(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/perfil [campo valor] - view or change the profile."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        args = context.args or []
        if not args:
            await update.message.reply_text(
                format_goal(self._store.daily_goal(), self._store.profile), parse_mode=ParseMode.MARKDOWN
            )
            return
        if len(args) < 2:
            await update.message.reply_text(
                "Uso: /perfil <campo> <valor>\n"
                "Campos: peso, atividade, meta, acordar, dormir, lembretes, inteligente, clima, saude, unidades, nome"
            )
            return

        try:
            changes = parse_profile_change(args[0], " ".join(args[1:]), self._store.profile.unit_system)
            result = self._store.update_profile(**changes)
        except (ValueError, HydrationError) as exc:
            await update.message.reply_text(format_error_message("perfil", exc), parse_mode=ParseMode.MARKDOWN)
            return
        await update.message.reply_text(
            "✅ Perfil atualizado.\n\n" + format_goal(result.goal, self._store.profile),
            parse_mode=ParseMode.MARKDOWN,
        )
        self._changed()

    async def _cmd_clima(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/clima <temperatura> [humidade] - supply today's weather signal."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        args = context.args or []
        try:
            weather = WeatherSignal(
                temperature_c=_parse_number(args[0]),
                humidity_percent=_parse_number(args[1]) if len(args) > 1 else None,
            )
        except IndexError:
            await update.message.reply_text("Uso: /clima <temperatura °C> [humidade %]")
            return
        except (ValueError, HydrationError) as exc:
            await update.message.reply_text(format_error_message("clima", exc), parse_mode=ParseMode.MARKDOWN)
            return
        goal = self._store.update_weather(weather)
        await update.message.reply_text(format_goal(goal, self._store.profile), parse_mode=ParseMode.MARKDOWN)
        self._changed()

    async def _cmd_treino(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/treino <minutos> [kcal] - supply today's workout signal."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        args = context.args or []
        try:
            workout = WorkoutSignal(
                exercise_minutes=_parse_number(args[0]),
                active_energy_kcal=_parse_number(args[1]) if len(args) > 1 else None,
            )
        except IndexError:
            await update.message.reply_text("Uso: /treino <minutos> [kcal]")
            return
        except (ValueError, HydrationError) as exc:
            await update.message.reply_text(format_error_message("treino", exc), parse_mode=ParseMode.MARKDOWN)
            return
        goal = self._store.update_workout(workout)
        await update.message.reply_text(format_goal(goal, self._store.profile), parse_mode=ParseMode.MARKDOWN)
        self._changed()

    async def _cmd_apagar(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/apagar - delete today's most recent entry."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        result = self._store.delete_last_entry()
        if result is None:
            await update.message.reply_text("Não há registos para apagar hoje.")
            return
        entry = result.entry
        await update.message.reply_text(
            f"🗑 Apagado: *{entry.fluid_type.label} {format_volume(entry.volume_ml, self._store.profile.unit_system)}* "
            f"das {entry.timestamp.strftime('%H:%M')}",
            parse_mode=ParseMode.MARKDOWN,
        )
        self._changed()

    async def _cmd_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """/status - bot status and scheduled jobs."""
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        next_jobs: dict[str, str] = {}
        if context.bot_data.get("scheduler"):
            scheduler = context.bot_data["scheduler"]
            for job in scheduler.get_jobs():
                next_run = job.next_run_time
                if next_run:
                    next_jobs[job.name] = next_run.strftime("%d/%m %H:%M")

        text = format_status(
            self._store.state,
            self._repo.count_entries(),
            self._repo.get_recent_reminder_logs(5),
            next_jobs,
        )
        await update.message.reply_text(text, parse_mode=ParseMode.MARKDOWN)

    async def _cmd_ajuda(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not self._auth_check(update) or _is_rate_limited(update.effective_chat.id):
            return
        await update.message.reply_text(format_help_message())

    # ------------------------------------------------------------------ #
    # Application lifecycle                                                #
    # ------------------------------------------------------------------ #

    def build_application(self) -> Application:
        """Build and configure the telegram Application with all command handlers."""
        app = (
            Application.builder()
            .token(self._config.telegram_bot_token)
            .post_init(self._post_init)
            .build()
        )

        app.add_handler(CommandHandler("agua", self._cmd_agua))
        app.add_handler(CommandHandler("beber", self._cmd_agua))
        app.add_handler(CommandHandler("hoje", self._cmd_hoje))
        app.add_handler(CommandHandler("missoes", self._cmd_missoes))
        app.add_handler(CommandHandler("conquistas", self._cmd_conquistas))
        app.add_handler(CommandHandler("semana", self._cmd_semana))
        app.add_handler(CommandHandler("objetivo", self._cmd_objetivo))
        app.add_handler(CommandHandler("perfil", self._cmd_perfil))
        app.add_handler(CommandHandler("clima", self._cmd_clima))
        app.add_handler(CommandHandler("treino", self._cmd_treino))
        app.add_handler(CommandHandler("apagar", self._cmd_apagar))
        app.add_handler(CommandHandler("status", self._cmd_status))
        app.add_handler(CommandHandler("ajuda", self._cmd_ajuda))
        app.add_handler(CommandHandler("help", self._cmd_ajuda))

        self._app = app
        return app

    async def _post_init(self, app: Application) -> None:
        await self.register_commands(app.bot)

    async def register_commands(self, bot: Bot | None = None) -> None:
        """Register command list with BotFather so they appear in the Telegram UI."""
        bot = bot or Bot(token=self._config.telegram_bot_token)
        commands = [
            BotCommand("agua", "Registar bebida (ex: /agua 330 cha)"),
            BotCommand("hoje", "Progresso de hoje"),
            BotCommand("missoes", "Missões do dia"),
            BotCommand("conquistas", "Conquistas e nível"),
            BotCommand("semana", "Relatório semanal"),
            BotCommand("objetivo", "Objetivo diário"),
            BotCommand("perfil", "Ver ou alterar perfil"),
            BotCommand("clima", "Informar temperatura de hoje"),
            BotCommand("treino", "Informar minutos de treino"),
            BotCommand("apagar", "Apagar último registo de hoje"),
            BotCommand("status", "Estado do bot"),
            BotCommand("ajuda", "Lista de comandos"),
        ]
        await bot.set_my_commands(commands)
        logger.info("Telegram commands registered with BotFather")
