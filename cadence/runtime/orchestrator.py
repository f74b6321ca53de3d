"""Wires Cadence's components together and owns their lifecycle."""

import json
import logging

from langchain_core.language_models import BaseChatModel

from cadence.agent.engine import AgentEngine
from cadence.agent.examples import load_examples
from cadence.agent.model import create_chat_model
from cadence.channels.base import ChannelTransport, DisabledTransport, InboundMessage, parse_session_key
from cadence.channels.inbox import ChannelInbox
from cadence.channels.notifier import Notifier
from cadence.channels.poller import ChannelPoller
from cadence.channels.telegram import create_telegram_transport
from cadence.core.config import Config
from cadence.core.prompts import (
    PERMISSION_DECLINED_FOLLOWUP_TEMPLATE,
    PERMISSION_GRANTED_FOLLOWUP_TEMPLATE,
    PERMISSION_OUTCOME_TEMPLATE,
)
from cadence.db.database import DatabaseManager
from cadence.db.models import PermissionRequest, PermissionStatus, SessionSource, TriggerType
from cadence.permissions.broker import PermissionBroker
from cadence.runtime.tasks import TaskSupervisor
from cadence.sandbox.runner import CodeRunner, HttpCodeRunner, create_runner
from cadence.sessions.conversation import ConversationService
from cadence.sessions.manager import SessionManager
from cadence.workflows.escalation import EscalationTrigger
from cadence.workflows.executor import WorkflowExecutor
from cadence.workflows.scheduler import WorkflowScheduler
from cadence.workflows.service import WorkflowService
from cadence.workflows.webhooks import WebhookDispatcher

logger = logging.getLogger(__name__)

SYSTEM_SENDER = "system"


class CadenceOrchestrator:
    """Builds every component from config and starts/stops them together.

    Collaborators that talk to the outside world (chat model, code runner,
    transports) can be injected, which is how tests run the full stack.
    """

    def __init__(
        self,
        config: Config,
        db: DatabaseManager | None = None,
        model: BaseChatModel | None = None,
        runner: CodeRunner | None = None,
        transports: dict[str, ChannelTransport] | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Application configuration.
            db: Database manager (defaults to config.database.path).
            model: Chat model (defaults to the one named in config.agent).
            runner: Code runner (defaults to config.runner).
            transports: Channel transports by name (defaults to config.channels).
        """
        self.config = config
        self.db = db or DatabaseManager(config.database.path)
        self.tasks = TaskSupervisor()
        self.runner = runner or create_runner(config.runner)
        self.transports = transports if transports is not None else self._build_transports()

        self.notifier = Notifier(self.transports)
        self.inbox = ChannelInbox(self.db)
        self.broker = PermissionBroker(self.db)
        self.sessions = SessionManager(self.db)
        self.scheduler = WorkflowScheduler(timezone=config.scheduler.timezone)
        self.workflows = WorkflowService(self.db, self.runner, self.scheduler)

        self.engine = AgentEngine(
            model=model or create_chat_model(config.agent),
            runner=self.runner,
            workflows=self.workflows,
            broker=self.broker,
            db=self.db,
            public_base_url=config.permissions.public_base_url,
            max_rounds=config.agent.max_rounds,
            examples=load_examples(config.agent.examples_path),
        )
        self.conversation = ConversationService(
            self.engine,
            self.sessions,
            self.broker,
            history_window=config.agent.history_window,
        )

        self.escalation = EscalationTrigger(self.engine, self.tasks, self.notifier)
        self.executor = WorkflowExecutor(
            self.db,
            self.runner,
            notifier=self.notifier,
            escalation=self.escalation,
            tasks=self.tasks,
            timezone=config.scheduler.timezone,
        )
        self.scheduler.set_fire_callback(self._on_cron_fire)
        self.webhooks = WebhookDispatcher(self.db, self.executor, self.tasks)

        self.pollers = [
            ChannelPoller(
                channel=name,
                transport=transport,
                db=self.db,
                sessions=self.sessions,
                conversation=self.conversation,
                inbox=self.inbox,
                bot_name=config.channels.bot_name,
                poll_interval=config.channels.poll_interval_seconds,
                history_window=config.channels.history_window,
            )
            for name, transport in self.transports.items()
            if not isinstance(transport, DisabledTransport)
        ]

    def _build_transports(self) -> dict[str, ChannelTransport]:
        telegram = self.config.channels.telegram
        return {"telegram": create_telegram_transport(telegram.enabled, telegram.token)}

    async def start(self) -> None:
        """Create tables, connect transports, load cron workflows and start polling."""
        await self.db.init_db()

        for name, transport in self.transports.items():
            transport.on_message(self.inbox)
            try:
                await transport.start()
            except Exception as e:
                logger.error(f"Failed to start {name} transport: {e}", exc_info=True)

        await self.scheduler.load_all(self.db)
        await self.scheduler.start()

        for poller in self.pollers:
            await poller.start()

        logger.info(f"Cadence started ({len(self.pollers)} channel poller(s))")

    async def stop(self) -> None:
        """Stop everything. Errors are logged so shutdown always completes."""
        for poller in self.pollers:
            await poller.stop()
        await self.scheduler.stop()

        for name, transport in self.transports.items():
            try:
                await transport.stop()
            except Exception as e:
                logger.error(f"Error stopping {name} transport: {e}")

        await self.tasks.shutdown()
        if isinstance(self.runner, HttpCodeRunner):
            await self.runner.close()
        await self.db.close()
        logger.info("Cadence stopped")

    async def _on_cron_fire(self, workflow_id: str) -> None:
        await self.executor.run(workflow_id, TriggerType.CRON)

    def trigger_workflow(self, workflow_id: str) -> None:
        """Run a workflow now, in the background."""
        self.tasks.spawn(
            self.executor.run(workflow_id, TriggerType.MANUAL),
            name=f"manual:{workflow_id}",
        )

    async def on_permission_resolved(self, request: PermissionRequest) -> None:
        """Resume the conversation that asked for this permission decision.

        When a turn is parked on the request's message, it is answered with
        the outcome: channel sessions get a synthetic inbound message so their
        poller resumes the turn in order with other chat traffic, web sessions
        are resumed in the background. A request with no parked turn (the
        turn ended after sharing the approval link) is routed back to the chat
        named by its session_key with the outcome and the approved args.
        """
        if not request.message_id:
            if request.session_key:
                await self._queue_followup(request)
            return

        message = await self.sessions.get_message(request.message_id)
        if message is None:
            logger.warning(f"Permission {request.id} links to missing message {request.message_id}")
            return

        pending = await self.sessions.find_pending(message.session_id)
        if pending is None or pending.id != message.id:
            logger.info(f"Session {message.session_id} is no longer waiting on permission {request.id}")
            return

        text = PERMISSION_OUTCOME_TEMPLATE.format(
            permission_id=request.id,
            endpoint=request.endpoint,
            status=request.status,
        )
        session = await self.sessions.get(message.session_id)

        if session.source != SessionSource.WEB and session.external_id:
            await self._queue_system_message(session.external_id, text)
            return

        self.tasks.spawn(
            self.conversation.handle(session.id, text),
            name=f"permission-resume:{session.id}",
        )

    async def _queue_followup(self, request: PermissionRequest) -> None:
        if request.status == PermissionStatus.GRANTED:
            text = PERMISSION_GRANTED_FOLLOWUP_TEMPLATE.format(
                description=request.description,
                args=json.dumps(request.args, ensure_ascii=False),
            )
        else:
            text = PERMISSION_DECLINED_FOLLOWUP_TEMPLATE.format(description=request.description)
        await self._queue_system_message(request.session_key or "", text)

    async def _queue_system_message(self, session_key: str, text: str) -> None:
        try:
            channel, chat_id = parse_session_key(session_key)
        except ValueError:
            logger.warning(f"Cannot route permission outcome to '{session_key}'")
            return

        await self.inbox.enqueue(
            InboundMessage(
                channel=channel,
                chat_id=chat_id,
                sender_id=SYSTEM_SENDER,
                sender_name=SYSTEM_SENDER,
                content=text,
            )
        )
        logger.info(f"Queued permission outcome for {session_key}")
