from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs before it can boot.

    The full variable name is derived by the client as <TYPE>_<ENGINE>_<env_key>,
    e.g. env_key "URI" on the Mongo docstore client reads DOCSTORE_MONGO_URI.

    Attributes:
        env_key (str): Raw key without the client type and engine prefix.
        val_type (str): How the value is parsed: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Value used when unset. None marks the setting as required.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
