from enum import Enum
from typing import Any

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.exceptions import ConflictError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, ChatThread
from shared.models.config import EnvConfig
from shared.models.document import Document, DocumentScope, DocumentStatus, utc_now
from shared.helper.FilterBuilder import build_document_query

_DATETIME_FIELDS = ("created_at", "updated_at")


def _to_mongo_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    return value


def _to_mongo_document(model: BaseModel) -> dict:
    """Serialise a record with its id stored as _id and datetimes kept native."""
    data = model.model_dump(mode="json", exclude={"id"})
    for key in _DATETIME_FIELDS:
        if key in data:
            data[key] = getattr(model, key)
    data["_id"] = model.id
    return data


def _from_mongo_document(raw: dict) -> dict:
    data = dict(raw)
    data["id"] = str(data.pop("_id"))
    return data


class DocStoreClientMongo(DocStoreClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._uri = self.get_config_val("URI", default=None, val_type="string")
        self._database_name = self.get_config_val("DATABASE", default="docs_rag", val_type="string")
        self._timeout_ms = int(self.get_config_val("TIMEOUT_MS", default=5000, val_type="number"))
        self._client: AsyncMongoClient | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Mongo"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URI", val_type="string", default=None),
            EnvConfig(env_key="DATABASE", val_type="string", default="docs_rag"),
            EnvConfig(env_key="TIMEOUT_MS", val_type="number", default=5000),
        ]

    ################ COLLECTIONS ##################
    def _collection(self, name: str) -> AsyncCollection:
        if self._client is None:
            raise RuntimeError("Mongo client not initialised. Call boot() before making requests.")
        return self._client[self._database_name][name]

    @property
    def _documents(self) -> AsyncCollection:
        return self._collection("documents")

    @property
    def _threads(self) -> AsyncCollection:
        return self._collection("chat_threads")

    @property
    def _messages(self) -> AsyncCollection:
        return self._collection("chat_messages")

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        """Connect and make sure the query indexes exist."""
        self._client = AsyncMongoClient(self._uri, serverSelectionTimeoutMS=self._timeout_ms, tz_aware=True)
        await self._documents.create_index([("status", ASCENDING), ("category", ASCENDING), ("state", ASCENDING), ("district", ASCENDING)])
        await self._documents.create_index([("created_at", DESCENDING)])
        await self._threads.create_index([("owner_id", ASCENDING), ("category", ASCENDING), ("updated_at", DESCENDING)])
        await self._messages.create_index([("thread_id", ASCENDING), ("created_at", ASCENDING)])

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def do_healthcheck(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client[self._database_name].command("ping")
        except PyMongoError as e:
            self.logging.warning("Mongo healthcheck failed: %s", e)
            return False
        return True

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    async def do_create_document(self, document: Document) -> Document:
        try:
            await self._documents.insert_one(_to_mongo_document(document))
        except DuplicateKeyError as e:
            raise ConflictError(f"Document '{document.id}' already exists.") from e
        return document

    async def do_find_document(self, document_id: str) -> Document | None:
        raw = await self._documents.find_one({"_id": document_id})
        return Document(**_from_mongo_document(raw)) if raw else None

    async def do_update_document(self, document_id: str, patch: dict[str, Any]) -> Document | None:
        update = {key: _to_mongo_value(value) for key, value in patch.items()}
        update["updated_at"] = utc_now()
        raw = await self._documents.find_one_and_update(
            {"_id": document_id},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return Document(**_from_mongo_document(raw)) if raw else None

    async def do_delete_document(self, document_id: str) -> bool:
        result = await self._documents.delete_one({"_id": document_id})
        return result.deleted_count > 0

    async def do_list_documents(self) -> list[Document]:
        cursor = self._documents.find({}).sort("created_at", DESCENDING)
        return [Document(**_from_mongo_document(raw)) async for raw in cursor]

    async def do_find_documents(self, status: DocumentStatus, scope: DocumentScope) -> list[Document]:
        query = {"status": status.value, **build_document_query(scope)}
        cursor = self._documents.find(query)
        return [Document(**_from_mongo_document(raw)) async for raw in cursor]

    ##########################################
    ################ THREADS #################
    ##########################################

    async def do_create_thread(self, thread: ChatThread) -> ChatThread:
        await self._threads.insert_one(_to_mongo_document(thread))
        return thread

    async def do_find_thread(self, thread_id: str, owner_id: str) -> ChatThread | None:
        raw = await self._threads.find_one({"_id": thread_id, "owner_id": owner_id})
        return ChatThread(**_from_mongo_document(raw)) if raw else None

    async def do_find_latest_thread(self, owner_id: str, scope: DocumentScope) -> ChatThread | None:
        raw = await self._threads.find_one(
            {"owner_id": owner_id, "category": scope.category, "state": scope.state, "district": scope.district},
            sort=[("updated_at", DESCENDING)],
        )
        return ChatThread(**_from_mongo_document(raw)) if raw else None

    ##########################################
    ################ MESSAGES ################
    ##########################################

    async def do_create_message(self, message: ChatMessage) -> ChatMessage:
        await self._messages.insert_one(_to_mongo_document(message))
        await self._threads.update_one({"_id": message.thread_id}, {"$set": {"updated_at": message.created_at}})
        return message
