"""Block header data models for Ethereum-compatible chains."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class HeaderDecodeError(ValueError):
    """A newHeads payload could not be decoded."""
    pass


def parse_quantity(value: Any) -> int:
    """
    Decode a JSON-RPC hex quantity ("0x1b4") into an int.

    Python ints are unbounded, so block numbers past 2**64 survive intact.
    Plain integers are accepted for nodes that do not hex-encode.
    """
    if isinstance(value, bool):
        raise HeaderDecodeError(f"invalid quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value[:2].lower() == "0x" and len(value) > 2:
        try:
            return int(value, 16)
        except ValueError:
            pass
    raise HeaderDecodeError(f"invalid quantity: {value!r}")


def _optional_quantity(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    return None if value is None else parse_quantity(value)


@dataclass(frozen=True)
class BlockHeader:
    """Block header as announced by a newHeads subscription."""
    number: int
    hash: Optional[str] = None
    parent_hash: Optional[str] = None
    timestamp: Optional[int] = None
    gas_limit: Optional[int] = None
    gas_used: Optional[int] = None
    base_fee_per_gas: Optional[int] = None
    miner: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "BlockHeader":
        """Build a header from the ``params.result`` object of a notification."""
        if not isinstance(payload, dict):
            raise HeaderDecodeError(f"header payload is not an object: {payload!r}")
        if payload.get("number") is None:
            raise HeaderDecodeError("header payload has no block number")

        return cls(
            number=parse_quantity(payload["number"]),
            hash=payload.get("hash"),
            parent_hash=payload.get("parentHash"),
            timestamp=_optional_quantity(payload, "timestamp"),
            gas_limit=_optional_quantity(payload, "gasLimit"),
            gas_used=_optional_quantity(payload, "gasUsed"),
            base_fee_per_gas=_optional_quantity(payload, "baseFeePerGas"),
            miner=payload.get("miner"),
            raw=dict(payload),
        )

    @property
    def number_str(self) -> str:
        """Block number in decimal."""
        return str(self.number)
