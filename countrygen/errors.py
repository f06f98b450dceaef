# countrygen/errors.py
#
# -----------------------------------------------------------------------------
# Error taxonomy
# -----------------------------------------------------------------------------
# Request-path errors (InteractionError subclasses) are terminal for the
# request. Each one maps to a fixed HTTP status and a fixed public message.
# public_message never depends on the input (no parse errors, no crypto
# failure reasons).
#
# Startup errors (ConfigError) abort the process before it starts serving.
# -----------------------------------------------------------------------------


class ConfigError(RuntimeError):
    """Missing or invalid process configuration. Fatal at startup."""


# -----------------------------------------------------------------------------
# Hex decoding
# -----------------------------------------------------------------------------
class HexError(ValueError):
    pass


class InvalidHexLength(HexError):
    def __init__(self, expected: int, got: int):
        super().__init__(f"expected {expected} hex characters, got {got}")
        self.expected = expected
        self.got = got


class InvalidHexDigit(HexError):
    def __init__(self, position: int):
        super().__init__(f"invalid hex digit at position {position}")
        self.position = position


# -----------------------------------------------------------------------------
# Request path
# -----------------------------------------------------------------------------
class InteractionError(Exception):
    status_code: int = 400
    public_message: str = "bad request"

    def __str__(self) -> str:
        return self.public_message


class MissingHeader(InteractionError):
    def __init__(self, header: str):
        super().__init__(header)
        self.header = header
        self.public_message = f"missing header: {header}"


class InvalidHeaderEncoding(InteractionError):
    def __init__(self, header: str):
        super().__init__(header)
        self.header = header
        self.public_message = f"malformed header: {header}"


class AuthError(InteractionError):
    pass


class MalformedSignature(AuthError):
    public_message = "malformed signature"


class InvalidSignature(AuthError):
    # Same outcome for wrong key, wrong message and corrupted signature.
    status_code = 401
    public_message = "invalid request signature"


class DecodeError(InteractionError):
    pass


class UnrecognizedEnvelope(DecodeError):
    public_message = "failed to parse interaction"


class DispatchError(InteractionError):
    pass


class UnknownCommand(DispatchError):
    public_message = "unknown command"

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name
