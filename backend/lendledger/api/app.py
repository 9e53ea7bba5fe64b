"""FastAPI application hosting the lending ledger."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from stellar_sdk import Keypair

from lendledger.api.dependencies import get_app_state
from lendledger.api.routes import admin, borrows, deposits, status, withdrawals
from lendledger.blockchain.client import SorobanClient
from lendledger.blockchain.event_listener import RegistryEventListener
from lendledger.blockchain.gateway import SorobanTransferGateway
from lendledger.config import LedgerConfig
from lendledger.executor.message_handler import MessageHandler
from lendledger.executor.outgoing_processor import MockTransferGateway, OutgoingProcessor
from lendledger.ledger import LendingLedger
from lendledger.models.message import IncomingMessage
from lendledger.queues.message_queue import IncomingQueue, OutgoingQueue
from lendledger.storage.message_store import MessageStore

logger = logging.getLogger(__name__)


async def _stop_task(task: Optional[asyncio.Task]) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


def create_app(
    ledger: Optional[LendingLedger] = None,
    message_store: Optional[MessageStore] = None,
    message_queue: Optional[IncomingQueue] = None,
    outgoing_queue: Optional[OutgoingQueue] = None,
    config: Optional[LedgerConfig] = None,
    run_handlers: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        ledger: LendingLedger instance (created from config if not provided)
        message_store: MessageStore instance (created if not provided)
        message_queue: IncomingQueue instance (created if not provided)
        outgoing_queue: OutgoingQueue instance (created if not provided)
        config: LedgerConfig (read from the environment if not provided)
        run_handlers: Whether to run the handler, processor and listener in background

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = ledger.config if ledger is not None else LedgerConfig.from_env()
    ledger = ledger or LendingLedger(config=config)
    message_store = message_store or MessageStore()
    message_queue = message_queue or IncomingQueue()
    outgoing_queue = outgoing_queue or OutgoingQueue()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_state = get_app_state()
        app_state.ledger = ledger
        app_state.message_store = message_store
        app_state.message_queue = message_queue
        app_state.admin_address = config.admin_address

        if config.admin_address is None:
            logger.warning("No LENDLEDGER_ADMIN_ADDRESS set, admin operations are disabled")

        handler: Optional[MessageHandler] = None
        processor: Optional[OutgoingProcessor] = None
        listener: Optional[RegistryEventListener] = None
        tasks: list[asyncio.Task] = []

        if run_handlers:
            soroban_client = SorobanClient(
                rpc_url=config.soroban_rpc_url,
                contract_id=config.lending_contract_id,
            )

            handler = MessageHandler(
                message_queue=message_queue,
                outgoing_queue=outgoing_queue,
                ledger=ledger,
                message_store=message_store,
                admin_address=config.admin_address,
            )

            if config.admin_secret_key and config.lending_contract_id:
                admin_keypair = Keypair.from_secret(config.admin_secret_key)
                gateway = SorobanTransferGateway(client=soroban_client, admin_keypair=admin_keypair)
                logger.info(f"Using SorobanTransferGateway with admin: {admin_keypair.public_key}")
            else:
                gateway = MockTransferGateway()
                logger.warning("No ADMIN_SECRET_KEY or LENDING_CONTRACT_ID, using MockTransferGateway")

            processor = OutgoingProcessor(
                outgoing_queue=outgoing_queue,
                gateway=gateway,
                ledger=ledger,
            )

            tasks.append(asyncio.create_task(handler.start()))
            tasks.append(asyncio.create_task(processor.start()))

            if config.lending_contract_id:

                async def on_message(message: IncomingMessage) -> None:
                    message_store.add(message)
                    await message_queue.put(message)
                    logger.info(f"Registry event: {message.type.value} {message.payload}")

                listener = RegistryEventListener(client=soroban_client, on_message=on_message)
                tasks.append(asyncio.create_task(listener.start()))
                logger.info(f"Listening to contract {config.lending_contract_id}")

            logger.info("Message handler and outgoing processor started")

        yield

        for component in (handler, processor, listener):
            if component is not None:
                await component.stop()
        for task in tasks:
            await _stop_task(task)
        if run_handlers:
            logger.info("Message handler and outgoing processor stopped")

    app = FastAPI(
        title="LendLedger",
        description="Lending ledger with collateralized borrows on Stellar",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(deposits.router)
    app.include_router(borrows.router)
    app.include_router(withdrawals.router)
    app.include_router(admin.router)
    app.include_router(status.router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Default app instance for uvicorn
app = create_app()
