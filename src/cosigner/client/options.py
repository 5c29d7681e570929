"""Per-operation options for WalletClient calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ExportOptions:
    """
    Attributes:
        compressed: Positional form without derivable fields (default False)
        password: Encrypt the export with this password (default None)
        no_sign: Strip the signing key for a read-only copy (default False)
    """

    compressed: bool = False
    password: Optional[str] = None
    no_sign: bool = False


@dataclass(frozen=True)
class ImportOptions:
    """Must mirror the ExportOptions used to produce the payload."""

    compressed: bool = False
    password: Optional[str] = None


@dataclass(frozen=True)
class AddressQuery:
    """do_not_verify skips address re-derivation (default False: fail closed)."""

    do_not_verify: bool = False


@dataclass(frozen=True)
class TxProposalQuery:
    """
    Attributes:
        do_not_verify: Skip proposal signature checks (default False)
        for_air_gapped: Return an AirGappedBundle for an offline signer (default False)
    """

    do_not_verify: bool = False
    for_air_gapped: bool = False


@dataclass(frozen=True)
class TxProposalRequest:
    """A spend to propose: amount in the smallest currency unit."""

    to_address: str
    amount: int
    message: Optional[str] = None


@dataclass
class AirGappedBundle:
    """
    Everything an offline signer needs.

    Attributes:
        txps: Proposals as received, messages still encrypted
        encrypted_pkr: Public key ring JSON encrypted under the personal key
        m: Required signatures
        n: Copayers in the wallet
    """

    txps: List[Dict[str, Any]] = field(default_factory=list)
    encrypted_pkr: str = ""
    m: int = 0
    n: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txps": self.txps,
            "encryptedPkr": self.encrypted_pkr,
            "m": self.m,
            "n": self.n,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AirGappedBundle":
        return cls(
            txps=list(payload.get("txps") or []),
            encrypted_pkr=payload.get("encryptedPkr", ""),
            m=payload.get("m", 0),
            n=payload.get("n", 0),
        )
