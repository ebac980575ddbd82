from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date

from action_bridge import BusinessContext, FallbackClient, Settings, build_default_registry

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

CLIENTS = [
    {"id": "c1", "name": "Padaria Central", "contact_name": "Ana", "contact_phone": "11911112222", "status": "active"},
    {"id": "c2", "name": "Oficina do Zé", "contact_name": "José", "status": "active"},
]


async def propose_action(message: str) -> None:
    """
    Ask the configured providers, in order, which tool fits *message*.

    Nothing is executed: the proposed call is what a confirmation card
    would be built from.
    """
    settings = Settings.from_env()
    fallback = FallbackClient.from_settings(settings, build_default_registry())
    context = BusinessContext(actor_id="demo", today=date.today(), clients=CLIENTS)

    try:
        reply = await fallback.process_message(message, context)
    finally:
        await fallback.aclose()

    for attempt in reply.attempts:
        logger.info("attempt %d: %s -> %s", attempt.ordinal, attempt.provider, attempt.outcome)

    if not reply.tool_calls:
        logger.info("%s answered directly: %s", reply.provider_used, reply.text)
        return
    for call in reply.tool_calls:
        logger.info("%s proposes %s(%s)", reply.provider_used, call.name, call.parameters)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("message", nargs="?", default="Marca uma reunião com a padaria amanhã às 15h")
    args = parser.parse_args()

    asyncio.run(propose_action(args.message))
