# countrygen/commands.py
#
# Slash command registry + dispatch.
#
# Each command is a name, a description (what the platform shows in its
# command picker) and a word list. A command reply is one entry of its list,
# drawn uniformly at random.
#
# Word lists live in countrygen/words/<name>.txt, one entry per line. They are
# loaded once at startup and treated as read-only afterwards.

import logging
import secrets
from dataclasses import dataclass
from importlib import resources
from types import MappingProxyType
from typing import Mapping, Tuple, Union

from .errors import ConfigError, UnknownCommand
from .interactions import (
    ApplicationCommand,
    ChannelMessageWithSource,
    InteractionResponse,
    Ping,
    Pong,
)

logger = logging.getLogger(__name__)

# name -> description
COMMAND_DESCRIPTIONS = {
    "city": "generate a random city",
    "country": "generate a random country",
}


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    words: Tuple[str, ...]

    def registration_payload(self) -> dict:
        return {"name": self.name, "description": self.description}


def parse_word_list(text: str) -> Tuple[str, ...]:
    return tuple(line.strip() for line in text.splitlines() if line.strip())


def load_word_list(name: str) -> Tuple[str, ...]:
    """Load the bundled word list for `name`. An empty list is a ConfigError."""
    try:
        path = resources.files(__package__) / "words" / f"{name}.txt"
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"no word list for command '{name}'") from e

    words = parse_word_list(text)
    if not words:
        raise ConfigError(f"word list for command '{name}' is empty")
    return words


def load_commands() -> Mapping[str, Command]:
    commands = {
        name: Command(name=name, description=desc, words=load_word_list(name))
        for name, desc in COMMAND_DESCRIPTIONS.items()
    }
    for cmd in commands.values():
        logger.info("loaded command /%s (%d entries)", cmd.name, len(cmd.words))
    return MappingProxyType(commands)


# -----------------------------------------------------------------------------
# Dispatch
# -----------------------------------------------------------------------------
def dispatch(
    interaction: Union[Ping, ApplicationCommand],
    commands: Mapping[str, Command],
) -> InteractionResponse:
    """
    Map an interaction to its reply.

      Ping               -> Pong
      ApplicationCommand -> ChannelMessageWithSource(random entry)
                            or UnknownCommand if the name is not registered

    secrets.choice draws from the OS CSPRNG on every call; there is no shared
    generator state between requests.
    """
    if isinstance(interaction, Ping):
        return Pong()

    if isinstance(interaction, ApplicationCommand):
        cmd = commands.get(interaction.name)
        if cmd is None:
            raise UnknownCommand(interaction.name)
        return ChannelMessageWithSource.with_content(secrets.choice(cmd.words))

    raise TypeError(f"unhandled interaction type: {type(interaction).__name__}")
