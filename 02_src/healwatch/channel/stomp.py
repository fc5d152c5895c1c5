"""Minimal STOMP 1.2 frame codec for the push channel.

Only the client side of the protocol is covered: the frames a subscriber
sends (CONNECT, SUBSCRIBE, UNSUBSCRIBE, DISCONNECT) and the frames a broker
sends back (CONNECTED, MESSAGE, RECEIPT, ERROR). Bare EOLs are heart-beats.
"""

from dataclasses import dataclass, field

NULL = "\x00"
HEARTBEAT = "\n"

CLIENT_COMMANDS = {"CONNECT", "STOMP", "SUBSCRIBE", "UNSUBSCRIBE", "DISCONNECT", "SEND", "ACK", "NACK"}
SERVER_COMMANDS = {"CONNECTED", "MESSAGE", "RECEIPT", "ERROR"}

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", ":": "\\c"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "c": ":"}


class FrameError(ValueError):
    """Raised for bytes that are not a valid STOMP frame."""


@dataclass(frozen=True)
class Frame:
    """A decoded STOMP frame."""

    command: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def destination(self) -> str | None:
        return self.headers.get("destination")


def _escape(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def _unescape(value: str) -> str:
    out = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt not in _UNESCAPES:
            raise FrameError(f"Invalid header escape: \\{nxt or ''}")
        out.append(_UNESCAPES[nxt])
    return "".join(out)


def encode_frame(command: str, headers: dict[str, str] | None = None, body: str = "") -> str:
    """Serialize a client frame. CONNECT headers are sent unescaped, per STOMP 1.2."""
    if command not in CLIENT_COMMANDS:
        raise FrameError(f"Not a client command: {command}")
    lines = [command]
    escape = command not in {"CONNECT", "STOMP"}
    for key, value in (headers or {}).items():
        if escape:
            key, value = _escape(key), _escape(str(value))
        lines.append(f"{key}:{value}")
    return "\n".join(lines) + "\n\n" + body + NULL


def is_heartbeat(raw: str | bytes) -> bool:
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    return text.strip("\r\n") == ""


def parse_frame(raw: str | bytes) -> Frame:
    """
    Parse one server frame.

    Raises:
        FrameError: unknown command, missing header terminator, bad header
            line or escape, or a body shorter than its content-length.
    """
    data = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
    # Leading EOLs are heart-beats glued to the frame
    data = data.lstrip(b"\r\n")

    head_end = data.find(b"\n\n")
    sep_len = 2
    crlf_end = data.find(b"\r\n\r\n")
    if crlf_end != -1 and (head_end == -1 or crlf_end < head_end):
        head_end, sep_len = crlf_end, 4
    if head_end == -1:
        raise FrameError("Frame has no header terminator")

    try:
        head = data[:head_end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise FrameError("Frame headers are not UTF-8") from e
    head_lines = [line.rstrip("\r") for line in head.split("\n")]
    command = head_lines[0].strip()
    if command not in SERVER_COMMANDS:
        raise FrameError(f"Unknown server command: {command!r}")

    headers: dict[str, str] = {}
    for line in head_lines[1:]:
        if ":" not in line:
            raise FrameError(f"Malformed header line: {line!r}")
        key, value = line.split(":", 1)
        key = _unescape(key)
        # First occurrence wins on repeated headers
        headers.setdefault(key, _unescape(value))

    rest = data[head_end + sep_len:]
    length = headers.get("content-length")
    if length is not None:
        try:
            size = int(length)
        except ValueError as e:
            raise FrameError(f"Invalid content-length: {length!r}") from e
        if size < 0 or len(rest) < size:
            raise FrameError("Frame body shorter than content-length")
        body_bytes = rest[:size]
    else:
        null_at = rest.find(b"\x00")
        body_bytes = rest if null_at == -1 else rest[:null_at]

    try:
        body = body_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FrameError("Frame body is not UTF-8") from e
    return Frame(command=command, headers=headers, body=body)


def negotiate_heartbeat(client_ms: tuple[int, int], server_header: str | None) -> tuple[int, int]:
    """
    Agree heart-beat intervals from our CONNECT value and the CONNECTED header.

    Returns ``(send_ms, expect_ms)``: how often we must send an EOL and how
    often the broker will. 0 disables that direction. A missing or malformed
    header disables both.
    """
    try:
        server_x, server_y = (int(part) for part in (server_header or "0,0").split(","))
    except ValueError:
        return 0, 0
    if server_x < 0 or server_y < 0:
        return 0, 0
    client_x, client_y = client_ms
    send_ms = max(client_x, server_y) if client_x and server_y else 0
    expect_ms = max(client_y, server_x) if client_y and server_x else 0
    return send_ms, expect_ms


def connect_frame(host: str, heartbeat_ms: tuple[int, int] = (10000, 10000)) -> str:
    return encode_frame(
        "CONNECT",
        {
            "accept-version": "1.2",
            "host": host,
            "heart-beat": f"{heartbeat_ms[0]},{heartbeat_ms[1]}",
        },
    )


def subscribe_frame(subscription_id: str, destination: str) -> str:
    return encode_frame(
        "SUBSCRIBE",
        {"id": subscription_id, "destination": destination, "ack": "auto"},
    )


def disconnect_frame(receipt: str = "disconnect-0") -> str:
    return encode_frame("DISCONNECT", {"receipt": receipt})
