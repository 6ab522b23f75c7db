import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.clients.events.EventClientInterface import EventClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.events import ProgressEvent


class EventClientRedis(EventClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._url = self.get_config_val("URL", default=None, val_type="string")
        self._channel = self.get_config_val("CHANNEL", default="admin:documents", val_type="string")
        self._redis: redis.Redis | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Redis"

    def get_channel(self) -> str:
        return self._channel

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URL", val_type="string", default=None),
            EnvConfig(env_key="CHANNEL", val_type="string", default="admin:documents"),
        ]

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        self._redis = redis.Redis.from_url(self._url, decode_responses=True)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def do_healthcheck(self) -> bool:
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            self.logging.warning("Redis events healthcheck failed: %s", e)
            return False

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_publish(self, event: ProgressEvent) -> int:
        if self._redis is None:
            raise RuntimeError("Redis client not initialised. Call boot() before publishing.")
        receivers = await self._redis.publish(self._channel, event.model_dump_json())
        self.logging.debug("Published %s event for document %s to %d subscriber(s).", event.kind.value, event.document_id, receivers)
        return receivers
