import socket
import time

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.clients.queue.QueueClientInterface import QueueClientInterface
from shared.exceptions import is_retryable
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.job import IngestJob


class QueueClientRedis(QueueClientInterface):
    """Reliable queue on plain Redis lists.

    Keys (all under QUEUE_REDIS_PREFIX):
      <prefix>:pending             list, FIFO (RPUSH / LMOVE from the left)
      <prefix>:inflight:<worker>   list of jobs claimed by one worker
      <prefix>:delayed             sorted set of retries scored by due time
      <prefix>:dead                list of permanently failed jobs
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._url = self.get_config_val("URL", default=None, val_type="string")
        self._prefix = self.get_config_val("PREFIX", default="ingest", val_type="string")
        self._worker_id = self.get_config_val("WORKER_ID", default=socket.gethostname(), val_type="string")
        self._max_attempts = int(self.get_config_val("MAX_ATTEMPTS", default=3, val_type="number"))
        self._backoff_seconds = float(self.get_config_val("BACKOFF_SECONDS", default=5, val_type="number"))
        self._redis: redis.Redis | None = None
        # job id -> exact raw entry in the in-flight list, needed for LREM
        self._claims: dict[str, str] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Redis"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URL", val_type="string", default=None),
            EnvConfig(env_key="PREFIX", val_type="string", default="ingest"),
            EnvConfig(env_key="MAX_ATTEMPTS", val_type="number", default=3),
            EnvConfig(env_key="BACKOFF_SECONDS", val_type="number", default=5),
        ]

    ################ KEYS ##################
    @property
    def pending_key(self) -> str:
        return f"{self._prefix}:pending"

    @property
    def inflight_key(self) -> str:
        return f"{self._prefix}:inflight:{self._worker_id}"

    @property
    def delayed_key(self) -> str:
        return f"{self._prefix}:delayed"

    @property
    def dead_key(self) -> str:
        return f"{self._prefix}:dead"

    def get_retry_delay(self, attempts: int) -> float:
        """Exponential backoff: BACKOFF_SECONDS, then doubled per further attempt."""
        return self._backoff_seconds * (2 ** max(attempts - 1, 0))

    def _require_redis(self) -> redis.Redis:
        if self._redis is None:
            raise RuntimeError("Redis client not initialised. Call boot() before making requests.")
        return self._redis

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
            self.logging.warning("Redis queue healthcheck failed: %s", e)
            return False

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_enqueue(self, job: IngestJob) -> IngestJob:
        await self._require_redis().rpush(self.pending_key, job.model_dump_json())
        self.logging.debug("Enqueued job %s for document %s.", job.id, job.document_id)
        return job

    async def _promote_due_jobs(self) -> int:
        """Move delayed retries whose backoff has elapsed back to the pending list."""
        client = self._require_redis()
        due = await client.zrangebyscore(self.delayed_key, "-inf", time.time())
        promoted = 0
        for raw in due:
            # zrem guards against two workers promoting the same entry
            if await client.zrem(self.delayed_key, raw):
                await client.rpush(self.pending_key, raw)
                promoted += 1
        return promoted

    async def do_claim(self, timeout: float) -> IngestJob | None:
        client = self._require_redis()
        await self._promote_due_jobs()
        raw = await client.blmove(self.pending_key, self.inflight_key, timeout, src="LEFT", dest="RIGHT")
        if raw is None:
            return None
        job = IngestJob.model_validate_json(raw)
        self._claims[job.id] = raw
        return job

    async def _release(self, job: IngestJob) -> None:
        raw = self._claims.pop(job.id, None)
        if raw is None:
            self.logging.warning("Job %s was not claimed by this worker, nothing to release.", job.id)
            return
        await self._require_redis().lrem(self.inflight_key, 1, raw)

    async def do_complete(self, job: IngestJob) -> None:
        await self._release(job)

    async def do_fail(self, job: IngestJob, error: BaseException) -> bool:
        client = self._require_redis()
        await self._release(job)
        failed = job.model_copy(update={"attempts": job.attempts + 1, "last_error": str(error)})

        if is_retryable(error) and failed.attempts < self._max_attempts:
            delay = self.get_retry_delay(failed.attempts)
            await client.zadd(self.delayed_key, {failed.model_dump_json(): time.time() + delay})
            self.logging.warning(
                "Job %s for document %s failed (attempt %d/%d), retrying in %.0fs: %s",
                job.id, job.document_id, failed.attempts, self._max_attempts, delay, error)
            return True

        await client.rpush(self.dead_key, failed.model_dump_json())
        self.logging.error(
            "Job %s for document %s dead-lettered after %d attempt(s): %s",
            job.id, job.document_id, failed.attempts, error, color="red")
        return False

    async def do_recover_inflight(self) -> int:
        client = self._require_redis()
        recovered = 0
        # newest first onto the head of pending keeps the original order
        while await client.lmove(self.inflight_key, self.pending_key, src="RIGHT", dest="LEFT") is not None:
            recovered += 1
        if recovered:
            self.logging.warning("Recovered %d in-flight job(s) of worker '%s'.", recovered, self._worker_id)
        self._claims.clear()
        return recovered
