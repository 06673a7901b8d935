import json
import logging
from aiokafka import AIOKafkaProducer, AIOKafkaConsumer

log = logging.getLogger(__name__)


class Bus:
    def __init__(self, brokers: str):
        self._brokers = brokers
        self.producer: AIOKafkaProducer | None = None
        self.consumer: AIOKafkaConsumer | None = None

    async def start_producer(self):
        self.producer = AIOKafkaProducer(
            bootstrap_servers=self._brokers,
            value_serializer=lambda v: json.dumps(v).encode(),
            key_serializer=lambda k: (k or "").encode()
        )
        await self.producer.start()
        log.info(f"[KAFKA] Producer started brokers={self._brokers}")

    async def start_consumer(self, topic: str, group_id: str):
        self.consumer = AIOKafkaConsumer(
            topic,
            bootstrap_servers=self._brokers,
            group_id=group_id,
            enable_auto_commit=True,
            value_deserializer=_decode_value,
            key_deserializer=lambda k: k.decode() if k else None
        )
        await self.consumer.start()
        log.info(f"[KAFKA] Consumer started topic={topic} group={group_id}")

    async def publish(self, topic: str, key: str | None, value: dict):
        assert self.producer, "producer not started"
        await self.producer.send_and_wait(topic, key=key, value=value)

    async def events(self):
        """Yield decoded event payloads, skipping records that were not JSON objects."""
        assert self.consumer, "consumer not started"
        async for rec in self.consumer:
            if not isinstance(rec.value, dict):
                log.warning(f"[KAFKA] Dropping non-object record at offset={rec.offset}")
                continue
            yield rec.key, rec.value

    async def stop(self):
        if self.consumer:
            await self.consumer.stop()
        if self.producer:
            await self.producer.stop()
        log.info("[KAFKA] Bus stopped")


def _decode_value(raw: bytes):
    try:
        return json.loads(raw.decode())
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
