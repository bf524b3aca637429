"""Domain entities describing backend models and the active model configuration."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelDescriptor:
    """A model the analysis service can be routed to.

    Descriptors are supplied by the model configuration provider; the retry
    handler treats ``[primary, *fallbacks]`` as an ordered, immutable list.
    """

    id: str
    display_name: str
    endpoint_url: str
    max_tokens: int
    is_primary: bool = False
    provider: str = ""


@dataclass(frozen=True)
class ModelConfig:
    """Fully resolved configuration used to issue one request."""

    model: str
    endpoint_url: str
    api_key: str | None = None
    temperature: float = 0.3
    max_tokens: int = 2000
    system_prompt: str = ""

    @property
    def id(self) -> str:
        return self.model
