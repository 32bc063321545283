"""Tailscale integration — resolve this machine's tailnet IPs and MagicDNS name."""

import ipaddress
import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
CommandRunner = Callable[[list[str]], subprocess.CompletedProcess]

STATUS_ARGS = ["status", "--json"]
STATUS_COMMAND = "`tailscale status --json`"


# ── Errors ───────────────────────────────────────────────────────────────

class TailscaleError(Exception):
    """Base class for every failure to resolve the Tailscale identity."""


class TailscaleNotFoundError(TailscaleError):
    def __init__(self, binary: str = "tailscale"):
        super().__init__(
            f"Could not find the `{binary}` binary in PATH. "
            "Install Tailscale or run tailserve without --tailscale."
        )
        self.binary = binary


class TailscaleSpawnError(TailscaleError):
    pass


class TailscaleStatusFailed(TailscaleError):
    """The status command ran but exited non-zero."""

    def __init__(self, returncode: int, details: str):
        super().__init__(f"{STATUS_COMMAND} failed: {details}")
        self.returncode = returncode
        self.details = details


class StatusDecodeError(TailscaleError):
    pass


class MissingSelfNodeError(TailscaleError):
    def __init__(self):
        super().__init__(f"{STATUS_COMMAND} output did not include `Self` node information")


class NoAddressesFoundError(TailscaleError):
    def __init__(self):
        super().__init__(
            "No Tailscale IPs found for this machine. Verify that Tailscale is connected."
        )


# ── Data ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TailscaleInfo:
    """This machine's identity on the tailnet.

    ``ips`` is never empty, holds no duplicates and is ordered IPv4 first,
    then by numeric value.
    """

    ips: tuple[IPAddress, ...]
    dns_name: str | None = None

    @property
    def host(self) -> str:
        """MagicDNS name with IP fallback."""
        return self.dns_name or str(self.ips[0])


@dataclass
class _SelfNode:
    tailscale_ips: list[Any]
    dns_name: str | None

    @classmethod
    def from_json(cls, data: dict) -> "_SelfNode":
        ips = data.get("TailscaleIPs", [])
        if not isinstance(ips, list):
            raise ValueError(f"`TailscaleIPs` must be a list, got {type(ips).__name__}")

        dns_name = data.get("DNSName")
        if dns_name is not None and not isinstance(dns_name, str):
            raise ValueError(f"`DNSName` must be a string, got {type(dns_name).__name__}")
        return cls(tailscale_ips=ips, dns_name=dns_name)


# ── Parsing ──────────────────────────────────────────────────────────────

def _address_key(ip: IPAddress) -> tuple[int, int]:
    return ip.version, int(ip)


def _parse_ip(value: Any) -> IPAddress:
    if not isinstance(value, str):
        raise ValueError(f"invalid IP address {value!r}")
    return ipaddress.ip_address(value)


def _normalize_dns_name(dns_name: str | None) -> str | None:
    if dns_name is None:
        return None
    if dns_name.endswith("."):
        dns_name = dns_name[:-1]
    return dns_name.strip() or None


def _decode_self_node(raw_json: bytes | str) -> _SelfNode | None:
    try:
        status = json.loads(raw_json)
        if not isinstance(status, dict):
            raise ValueError("expected a JSON object at the top level")
        node = status.get("Self")
        if node is None:
            return None
        if not isinstance(node, dict):
            raise ValueError(f"`Self` must be an object, got {type(node).__name__}")
        return _SelfNode.from_json(node)
    except (ValueError, RecursionError) as exc:
        raise StatusDecodeError(f"Failed to parse {STATUS_COMMAND} output: {exc}") from exc


def parse_status_json(raw_json: bytes | str) -> TailscaleInfo:
    """Validate and normalize the output of ``tailscale status --json``.

    Pure function: no process is spawned. Raises a :class:`TailscaleError`
    subclass when the document is malformed, lacks the ``Self`` node or
    lists no addresses.
    """
    self_node = _decode_self_node(raw_json)
    if self_node is None:
        raise MissingSelfNodeError()

    try:
        ips = {_parse_ip(value) for value in self_node.tailscale_ips}
    except ValueError as exc:
        raise StatusDecodeError(f"Failed to parse {STATUS_COMMAND} output: {exc}") from exc
    if not ips:
        raise NoAddressesFoundError()

    return TailscaleInfo(
        ips=tuple(sorted(ips, key=_address_key)),
        dns_name=_normalize_dns_name(self_node.dns_name),
    )


# ── Resolution ───────────────────────────────────────────────────────────

def _default_runner(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True)


def _as_text(output: bytes | str | None) -> str:
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output or ""


def _failure_details(result: subprocess.CompletedProcess) -> str:
    stderr = _as_text(result.stderr).strip()
    stdout = _as_text(result.stdout).strip()
    return stderr or stdout or "tailscale returned a non-zero exit code"


def resolve(binary: str = "tailscale", runner: CommandRunner | None = None) -> TailscaleInfo:
    """Run ``tailscale status --json`` and return this machine's identity.

    Blocks until the command exits. Every call spawns a fresh process; no
    result is cached.
    """
    runner = runner or _default_runner
    args = [binary, *STATUS_ARGS]
    logger.debug("Running %s", " ".join(args))

    try:
        result = runner(args)
    except FileNotFoundError as exc:
        logger.debug("%s not found on PATH", binary)
        raise TailscaleNotFoundError(binary) from exc
    except OSError as exc:
        logger.debug("Could not spawn %s: %s", binary, exc)
        raise TailscaleSpawnError(f"Failed to execute {STATUS_COMMAND}: {exc}") from exc

    if result.returncode != 0:
        details = _failure_details(result)
        logger.debug("%s exited with %d: %s", binary, result.returncode, details)
        raise TailscaleStatusFailed(result.returncode, details)

    info = parse_status_json(result.stdout)
    logger.debug("Resolved tailnet identity %s (%s)", info.host, ", ".join(map(str, info.ips)))
    return info
