"""Main TriageBot orchestrator that wires bolt, storage and scheduling.

This module implements the TriageBot class that serves as the main entry
point for Triage Bot. It:
- Registers the bolt listeners (shortcuts, modal submission, App Home)
- Serves Slack events and the OAuth install pages over aiohttp
- Owns the installation store and reminder scheduler lifecycle
- Handles graceful shutdown on signals (SIGTERM, SIGINT)
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

import structlog
from aiohttp import web
from slack_bolt.adapter.aiohttp import to_aiohttp_response, to_bolt_request
from slack_bolt.app.async_app import AsyncApp
from slack_bolt.oauth.async_oauth_flow import AsyncOAuthFlow
from slack_bolt.oauth.async_oauth_settings import AsyncOAuthSettings

from triage_bot.adapters.chat.oauth import TriageInstallationStore
from triage_bot.adapters.chat.slack import SlackAdapter
from triage_bot.adapters.chat.views import (
    CHANNEL_SELECTED_CALLBACK_ID,
    DEBUG_REMINDERS_SHORTCUT_ID,
    TRIAGE_SHORTCUT_ID,
    app_home_view,
    parse_channel_selection,
    select_triage_channel_modal,
)
from triage_bot.adapters.store.sqlite import SQLiteInstallationStore
from triage_bot.config.schema import BotConfig
from triage_bot.core.authorizer import AuthorizationResolver
from triage_bot.core.reminders import ReminderScheduler
from triage_bot.core.triage_handler import TriageHandler
from triage_bot.models.triage import TriageOutcome, TriageRequest
from triage_bot.utils.logging import LogEventNames, request_context
from triage_bot.utils.security import mask_secret

if TYPE_CHECKING:
    from slack_bolt.authorization import AuthorizeResult
    from slack_sdk.web.async_client import AsyncWebClient

log = structlog.get_logger()


class BotError(Exception):
    """Base exception for bot errors."""


class StartupError(BotError):
    """Failed to start the bot."""


class TriageBot:
    """Main orchestrator for the Slack app.

    Responsibilities:
    - Route shortcuts, modal submissions and App Home opens to handlers
    - Resolve per-tenant credentials through the authorization resolver
    - Run the HTTP server for events and the OAuth install flow
    - Start and stop the reminder scheduler

    Example:
        bot = create_bot(config)
        await bot.start()  # Blocks until shutdown signal
    """

    def __init__(
        self,
        config: BotConfig,
        store: SQLiteInstallationStore,
        resolver: AuthorizationResolver,
        handler: TriageHandler,
        scheduler: ReminderScheduler,
    ) -> None:
        """Initialize the TriageBot.

        Args:
            config: Application configuration
            store: Installation store (connected on start)
            resolver: Tenant to credential resolver
            handler: Triage pipeline
            scheduler: Reminder scheduler
        """
        self._config = config
        self._store = store
        self._resolver = resolver
        self._handler = handler
        self._scheduler = scheduler

        async def authorize(enterprise_id: str | None, team_id: str | None) -> AuthorizeResult:
            return await resolver.authorize(team_id)

        self._app = AsyncApp(
            signing_secret=config.slack.signing_secret,
            authorize=authorize,
        )
        self._oauth_flow = AsyncOAuthFlow(
            client=self._app.client,
            settings=AsyncOAuthSettings(
                client_id=config.slack.client_id,
                client_secret=config.slack.client_secret,
                scopes=config.slack.scopes,
                install_path=config.slack.install_path,
                redirect_uri_path=config.slack.redirect_uri_path,
                installation_store=TriageInstallationStore(store, resolver),
                state_expiration_seconds=config.slack.state_expiration_seconds,
            ),
        )

        self._runner: web.AppRunner | None = None
        self._running = False
        self._shutdown_event: asyncio.Event | None = None

        self._register_handlers()

    @property
    def app(self) -> AsyncApp:
        return self._app

    @property
    def is_running(self) -> bool:
        """Return True if the bot is currently serving requests."""
        return self._running

    def _register_handlers(self) -> None:
        """Register listeners with the bolt app."""

        @self._app.shortcut(TRIAGE_SHORTCUT_ID)
        async def handle_triage_shortcut(
            ack: Any,
            body: dict[str, Any],
            client: AsyncWebClient,
        ) -> None:
            await ack()
            await self.open_triage_modal(body["trigger_id"], client)

        @self._app.view(CHANNEL_SELECTED_CALLBACK_ID)
        async def handle_channel_selected(
            ack: Any,
            body: dict[str, Any],
            view: dict[str, Any],
            client: AsyncWebClient,
        ) -> None:
            await ack()
            await self.run_triage(
                team_id=body["team"]["id"],
                user_id=body["user"]["id"],
                view=view,
                client=client,
            )

        @self._app.event("app_home_opened")
        async def handle_app_home_opened(
            event: dict[str, Any],
            client: AsyncWebClient,
        ) -> None:
            await self.publish_home(event["user"], client)

        @self._app.shortcut(DEBUG_REMINDERS_SHORTCUT_ID)
        async def handle_debug_reminders(ack: Any, body: dict[str, Any]) -> None:
            await ack()
            log.info("debug_reminders_requested", user_id=body.get("user", {}).get("id"))
            await self._scheduler.trigger_now()

        @self._app.error
        async def handle_errors(error: Exception, body: dict[str, Any]) -> None:
            log.error(
                "bolt_listener_error",
                error=str(error),
                error_type=type(error).__name__,
                payload_type=body.get("type"),
            )

    async def open_triage_modal(self, trigger_id: str, client: AsyncWebClient) -> None:
        """Open the channel-selection modal for a shortcut invocation."""
        await SlackAdapter(client).open_view(
            trigger_id,
            select_triage_channel_modal(self._config.triage),
        )

    async def publish_home(self, user_id: str, client: AsyncWebClient) -> None:
        """Publish the static App Home panel."""
        await SlackAdapter(client).publish_home(
            user_id,
            app_home_view(user_id, self._config.taxonomy),
        )

    async def run_triage(
        self,
        team_id: str,
        user_id: str,
        view: dict[str, Any],
        client: AsyncWebClient,
    ) -> TriageOutcome:
        """Build a triage request from a submitted modal and run it.

        Args:
            team_id: Tenant the submission came from
            user_id: Submitting user, who receives the results by DM
            view: Submitted view payload
            client: Web API client bolt authorized for the tenant

        Returns:
            TriageOutcome of the pipeline
        """
        channel_id, hours_back = parse_channel_selection(
            view,
            default_hours=self._config.triage.default_hours_back,
            max_hours=max(self._config.triage.hours_options),
        )
        request = TriageRequest(
            tenant_id=team_id,
            channel_id=channel_id,
            hours_back=hours_back,
            requesting_user_id=user_id,
        )
        with request_context(tenant_id=team_id, user_id=user_id):
            credential = await self._resolver.resolve(team_id)
            return await self._handler.handle(request, SlackAdapter(client), credential)

    async def run_reminders_once(self) -> int:
        """Send every reminder once without serving. Returns posts sent."""
        await self._store.connect()
        try:
            return await self._scheduler.trigger_now()
        finally:
            await self._store.close()

    def web_app(self) -> web.Application:
        """aiohttp application serving events and the OAuth install pages."""
        slack = self._config.slack
        app = web.Application()
        app.router.add_post(slack.events_path, self._handle_events)
        app.router.add_get(slack.install_path, self._handle_install)
        app.router.add_get(slack.redirect_uri_path, self._handle_oauth_redirect)
        return app

    async def _handle_events(self, request: web.Request) -> web.Response:
        bolt_response = await self._app.async_dispatch(await to_bolt_request(request))
        return await to_aiohttp_response(bolt_response)

    async def _handle_install(self, request: web.Request) -> web.Response:
        bolt_response = await self._oauth_flow.handle_installation(
            await to_bolt_request(request)
        )
        return await to_aiohttp_response(bolt_response)

    async def _handle_oauth_redirect(self, request: web.Request) -> web.Response:
        bolt_response = await self._oauth_flow.handle_callback(await to_bolt_request(request))
        return await to_aiohttp_response(bolt_response)

    async def start(self) -> None:
        """Start serving and block until a shutdown signal arrives.

        Raises:
            StartupError: If startup fails
        """
        if self._running:
            log.warning("bot_already_running")
            return

        log.info(
            LogEventNames.BOT_STARTING,
            client_id=mask_secret(self._config.slack.client_id),
            host=self._config.server.host,
            port=self._config.server.port,
            reminders=len(self._config.reminders),
        )

        try:
            self._shutdown_event = asyncio.Event()
            await self._store.connect()
            self._scheduler.start()

            self._runner = web.AppRunner(self.web_app())
            await self._runner.setup()
            site = web.TCPSite(
                self._runner,
                host=self._config.server.host,
                port=self._config.server.port,
            )
            await site.start()

            self._setup_signal_handlers()
            self._running = True
            log.info(LogEventNames.BOT_STARTED, tenants=await self._store.count())

        except Exception as e:
            log.exception("bot_startup_failed", error=str(e))
            await self._cleanup()
            raise StartupError(f"Failed to start bot: {e}") from e

        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Gracefully stop serving and release resources."""
        if not self._running:
            log.warning("bot_not_running")
            return

        log.info(LogEventNames.BOT_STOPPING)
        await self._cleanup()
        self._running = False
        if self._shutdown_event:
            self._shutdown_event.set()
        log.info(LogEventNames.BOT_STOPPED)

    async def _cleanup(self) -> None:
        """Clean up resources."""
        self._scheduler.stop()

        if self._runner is not None:
            try:
                await self._runner.cleanup()
            except Exception as e:
                log.warning("web_runner_cleanup_error", error=str(e))
            self._runner = None

        try:
            await self._store.close()
        except Exception as e:
            log.warning("store_close_error", error=str(e))

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s: asyncio.create_task(self._handle_signal(s)),
                sig,
            )
            log.debug("signal_handler_registered", signal=sig.name)

    async def _handle_signal(self, sig: signal.Signals) -> None:
        log.info("received_signal", signal=sig.name)
        await self.stop()


def create_bot(config: BotConfig) -> TriageBot:
    """Factory function to create a TriageBot with all dependencies.

    Args:
        config: Application configuration

    Returns:
        Configured TriageBot instance (store not yet connected)
    """
    store = SQLiteInstallationStore(config.store.path)
    resolver = AuthorizationResolver(store, config.cache)
    handler = TriageHandler(config)
    scheduler = ReminderScheduler(
        store,
        resolver,
        config.reminders,
        config.taxonomy,
        config.triage,
    )
    return TriageBot(config, store, resolver, handler, scheduler)
