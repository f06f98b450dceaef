"""Discord interactions webhook that answers slash commands with a random city or country."""

__version__ = "0.1.0"
