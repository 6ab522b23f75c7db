from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class ClientManager:
    """
    Instantiates the client of one type for the engine named in the environment.

    The engine "<Engine>" of client type "<type>" is looked up as the class
    <Prefix><Engine> in the module shared.clients.<type>.<engine>.<Prefix><Engine>,
    e.g. RAG_ENGINE=qdrant resolves to shared.clients.rag.qdrant.RAGClientQdrant.
    """

    # set by subclasses
    client_type: str = ""
    class_prefix: str = ""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the engine name from <TYPE>_ENGINE.

        Returns:
            str: Capitalised engine name (e.g. "Qdrant").

        Raises:
            ValueError: If the variable is not set or empty.
        """
        env_key = f"{self.client_type.upper()}_ENGINE"
        engine = self.helper_config.get_string_val(env_key, default="")
        if not engine:
            raise ValueError(f"No {self.client_type} engine specified in configuration ({env_key}).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> ClientInterface:
        """
        Imports and instantiates the client class of the configured engine.

        Returns:
            ClientInterface: The instantiated client.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"{self.class_prefix}{engine}"
        try:
            module = __import__(
                f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type} engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, engine)
        return client

    def get_client(self) -> ClientInterface:
        """
        Returns the instantiated client.
        """
        return self.client
