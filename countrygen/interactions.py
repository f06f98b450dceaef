"""
countrygen/interactions.py

Typed envelopes exchanged with the platform.

Inbound (Interaction):
  - Ping               {"type": 1}
  - ApplicationCommand {"type": 2, "data": {"name": "<command>"}}

Outbound (InteractionResponse):
  - Pong                     {"type": 1}
  - ChannelMessageWithSource {"type": 4, "data": {"content": "<text>"}}

Discriminant rules:
  - Decoding reads `type` first and selects the variant from it (pydantic
    discriminated union). A tag that does not belong to a known variant fails
    before any other field is looked at. There is no "decode then check tag"
    step where a wrongly-tagged value could leak out.
  - Encoding never reads a tag from data. Each response class owns a TYPE
    constant and the serializer stamps it; `type` is not a field and cannot
    be passed to the constructor.
"""

from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Tag,
    TypeAdapter,
    ValidationError,
    model_serializer,
)

from .errors import UnrecognizedEnvelope


# -----------------------------------------------------------------------------
# Inbound
# -----------------------------------------------------------------------------
class _Inbound(BaseModel):
    # The platform sends many more keys (id, token, member, ...); we only
    # depend on the ones declared here.
    model_config = ConfigDict(strict=True, frozen=True, extra="ignore")


class Ping(_Inbound):
    type: Literal[1]


class ApplicationCommandData(_Inbound):
    name: str


class ApplicationCommand(_Inbound):
    type: Literal[2]
    data: ApplicationCommandData

    @property
    def name(self) -> str:
        return self.data.name


_INTERACTION_TAGS = {
    1: "ping",
    2: "application_command",
}


def _interaction_tag(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        tag = value.get("type")
    else:
        tag = getattr(value, "type", None)
    # bool is an int subclass and 1.0 == 1; the wire tag must be a real integer
    if type(tag) is not int:
        return None
    return _INTERACTION_TAGS.get(tag)


Interaction = Annotated[
    Union[
        Annotated[Ping, Tag("ping")],
        Annotated[ApplicationCommand, Tag("application_command")],
    ],
    Discriminator(_interaction_tag),
]

_interaction_adapter: TypeAdapter = TypeAdapter(Interaction)


def decode_interaction(body: bytes) -> Union[Ping, ApplicationCommand]:
    """
    Parse raw request bytes into an Interaction.

    Any failure (invalid JSON, missing/unknown/non-integer `type`, missing or
    mistyped variant fields) raises UnrecognizedEnvelope. The pydantic error
    is chained for logs but never reaches the caller.
    """
    try:
        return _interaction_adapter.validate_json(body, strict=True)
    except ValidationError as e:
        raise UnrecognizedEnvelope() from e


# -----------------------------------------------------------------------------
# Outbound
# -----------------------------------------------------------------------------
class InteractionResponse(BaseModel):
    TYPE: ClassVar[int]

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_serializer(mode="wrap")
    def _stamp_type(self, handler) -> dict[str, Any]:
        return {"type": self.TYPE, **handler(self)}


class Pong(InteractionResponse):
    TYPE: ClassVar[int] = 1


class MessageData(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    content: str


class ChannelMessageWithSource(InteractionResponse):
    TYPE: ClassVar[int] = 4

    data: MessageData

    @classmethod
    def with_content(cls, content: str) -> "ChannelMessageWithSource":
        return cls(data=MessageData(content=content))


def encode_response(response: InteractionResponse) -> bytes:
    """Serialize a response to compact JSON bytes. Always succeeds."""
    return response.model_dump_json().encode("utf-8")
