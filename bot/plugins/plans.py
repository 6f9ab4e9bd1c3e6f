"""Plan plugin: plan management button, /plan and /trial."""
from typing import Optional
import logging

from telegram import Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

import config
from plugins.base import BasePlugin
from plugins.formatting import format_limit, pricing_keyboard
from storage.plans import PLAN_LIMITS, PlanStatus, RemainingLimits

logger = logging.getLogger(__name__)

NO_PLAN_TEXT = "You don't have an active plan. Plans start at a weekend trip and go up to a month of travel."
TRIAL_TEXT = "🎁 Try a plan for your next trip. Pick the one that fits on the pricing page."


def render_plan_details(status: PlanStatus, limits: Optional[RemainingLimits]) -> str:
    if not status.has_plan or not status.plan or limits is None:
        return NO_PLAN_TEXT

    plan = status.plan
    maximums = PLAN_LIMITS[plan.type]
    return "\n".join([
        f"⭐ {plan.type.value.capitalize()} plan",
        f"Expires: {plan.expires_at:%Y-%m-%d %H:%M} UTC ({limits.days_remaining} days left)",
        f"Receipt scans left: {format_limit(limits.scans_remaining)} of {format_limit(maximums.max_scans)}",
        f"Trips left: {limits.trips_remaining} of {maximums.max_trips}",
        f"Travelers left: {limits.travelers_remaining} of {maximums.max_travelers}",
    ])


class PlansPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "plans"

    @property
    def private_commands(self):
        return [("plan", "Show your plan"), ("trial", "Try a plan")]

    def register(self, app: Application) -> None:
        app.add_handler(CallbackQueryHandler(self.plan_management, pattern="^plan_management$"))
        app.add_handler(CommandHandler("plan", self.plan_command))
        app.add_handler(CommandHandler("trial", self.trial))

    async def send_plan_details(self, context: ContextTypes.DEFAULT_TYPE, chat_id: int, user_id: int) -> None:
        status = self.plans.check_user_plan(user_id)
        limits = await self.plans.get_user_plan_limits(user_id)
        button = "🔄 Extend plan" if status.has_plan else "⭐ Get a plan"
        await context.bot.send_message(
            chat_id=chat_id,
            text=render_plan_details(status, limits),
            reply_markup=pricing_keyboard(config.PRICING_URL, user_id, button),
        )
        logger.info(f"Plan details sent to user {user_id} (active: {status.has_plan})")

    async def plan_management(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if not query or not query.message:
            return
        await self.send_plan_details(context, query.message.chat.id, query.from_user.id)
        await query.answer()
        self.log_analytics(update, "plan_management")

    async def plan_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        user = update.effective_user
        if not chat or not user or chat.type != "private":
            return
        await self.send_plan_details(context, chat.id, user.id)
        self.log_analytics(update, "plan_command")

    async def trial(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        user = update.effective_user
        if not chat or not user or chat.type != "private":
            return
        await self.safe_reply(update, context, TRIAL_TEXT, reply_markup=pricing_keyboard(config.PRICING_URL, user.id))
        self.log_analytics(update, "trial_command")
