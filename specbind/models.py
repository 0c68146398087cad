"""Core data models shared across specbind components."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")

PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")


@dataclass(frozen=True)
class SourceConfig:
    """One configured OpenAPI specification."""

    id: str
    name: str
    spec_url: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "specUrl": self.spec_url}


@dataclass(frozen=True)
class Variable:
    """A request parameter of a REST operation."""

    name: str
    location: str
    ref: str = "any"


@dataclass(frozen=True)
class ErrorResponse:
    """A non-success response declared for an operation."""

    response: Optional[str] = None
    response_type: Optional[str] = None


@dataclass
class RestData:
    """Descriptor payload for a single REST operation variant."""

    operation_id: str
    method: str
    paths: List[str] = field(default_factory=list)
    request_body: Optional[str] = None
    response: Optional[str] = None
    variables: List[Variable] = field(default_factory=list)
    content_type: Optional[str] = None
    response_type: Optional[str] = None
    is_downloadable: bool = False
    request_url: str = ""
    description: Optional[str] = None
    summary: Optional[str] = None
    error_responses: Dict[str, ErrorResponse] = field(default_factory=dict)
    response_examples: Dict[str, str] = field(default_factory=dict)

    @property
    def negotiation(self) -> tuple:
        """The content negotiation pair used for collision handling."""
        return (self.content_type or None, self.response_type or None)


@dataclass
class Schema:
    """Descriptor payload for a named component schema."""

    name: str
    schema: Dict[str, Any]
    description: Optional[str] = None


@dataclass
class ResourceDescriptor(Generic[T]):
    """Intermediate representation of one documented unit, tagged with its source."""

    id: str
    source: str
    data: T

    @property
    def name(self) -> str:
        if isinstance(self.data, RestData):
            return self.data.operation_id
        if isinstance(self.data, Schema):
            return self.data.name
        return self.id


@dataclass(frozen=True)
class Tab:
    """A named documentation block produced by a plugin."""

    name: str
    content: str


Descriptor = ResourceDescriptor[Union[RestData, Schema]]


def is_rest_descriptor(descriptor: ResourceDescriptor[Any]) -> bool:
    return isinstance(descriptor.data, RestData)


def is_schema_descriptor(descriptor: ResourceDescriptor[Any]) -> bool:
    return isinstance(descriptor.data, Schema)
