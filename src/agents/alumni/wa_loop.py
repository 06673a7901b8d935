"""
WhatsApp transport for the alumni agent.

Consumes `wa.inbound.v1` events from Kafka, runs each one through the turn
orchestrator and publishes the reply as a `wa.outbound.v1` event. Messages
from different users are handled concurrently; the orchestrator keeps turns
for the same user in order.
"""
import asyncio
import logging

from common.bus import Bus

from .config import settings
from .messages import APOLOGY_GENERIC
from .orchestrator import InboundMessage, TurnOrchestrator

log = logging.getLogger(__name__)

INBOUND_EVENT = "wa.inbound.v1"
OUTBOUND_EVENT = "wa.outbound.v1"


def parse_inbound(evt: dict) -> InboundMessage | None:
    """Turn a raw bus event into an InboundMessage, or None if it isn't one we handle."""
    if evt.get("type") != INBOUND_EVENT:
        return None
    data = evt.get("data") or {}
    sender = (data.get("from") or "").strip()
    text = (data.get("text") or "").strip()
    if not sender or not text:
        return None
    return InboundMessage(sender_id=sender, text=text, message_id=data.get("message_id") or evt.get("id"))


def outbound_event(to: str, text: str, in_reply_to: str | None = None) -> dict:
    return {"type": OUTBOUND_EVENT, "data": {"to": to, "text": text, "in_reply_to": in_reply_to}}


async def process_event(evt: dict, orchestrator: TurnOrchestrator, publish, topic_out: str = settings.TOPIC_WA_OUT):
    msg = parse_inbound(evt)
    if msg is None:
        return
    log.info(f"[KAFKA] Received from {msg.sender_id}: '{msg.text[:30]}...'")

    try:
        result = await orchestrator.handle(msg)
        if result.duplicate:
            log.info(f"[KAFKA] Redelivery of {msg.message_id} from {msg.sender_id}, already answered")
            return
        reply = result.reply
    except Exception as e:
        log.error(f"[KAFKA] Error handling message from {msg.sender_id}: {e}", exc_info=True)
        reply = APOLOGY_GENERIC

    if not reply:
        return
    try:
        await publish(topic_out, msg.sender_id, outbound_event(msg.sender_id, reply, msg.message_id))
    except Exception as e:
        log.error(f"[KAFKA] Could not publish reply to {msg.sender_id}: {e}")


async def wa_loop(orchestrator: TurnOrchestrator, bus: Bus | None = None):
    """
    Main Kafka consumer loop for WhatsApp messages
    """
    bus = bus or Bus(brokers=settings.KAFKA_BROKERS)
    await bus.start_producer()
    await bus.start_consumer(settings.TOPIC_WA_IN, group_id=settings.GROUP_ID)
    log.info("[KAFKA] Consumer started, listening for WhatsApp messages...")

    pending: set[asyncio.Task] = set()
    try:
        async for _key, evt in bus.events():
            task = asyncio.create_task(process_event(evt, orchestrator, bus.publish))
            pending.add(task)
            task.add_done_callback(pending.discard)
    finally:
        for task in pending:
            task.cancel()
        await bus.stop()
        log.info("[KAFKA] Consumer stopped")
