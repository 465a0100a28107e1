"""Core pydantic data models used across the project."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .amounts import parse_base_units

FieldType = Literal["decimalPlaces", "decimals"]

TRANSACTION_TYPE = "Transaction"

OPERATION_TYPES = frozenset(
    {
        "SEND",
        "RECEIVE",
        "SWAP",
        "SWAP_FORWARD",
        "TOKEN_ADMIN_SUPPLY",
        "TOKEN_ADMIN_MODIFY_BALANCE",
        "CREATE_IDENTIFIER",
        "SET_REP",
        "SET_INFO",
        "UPDATE_PERMISSIONS",
        "UNKNOWN",
    }
)


class TokenMetadata(BaseModel):
    """Display metadata for a token, possibly partial."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    ticker: Optional[str] = None
    decimals: Optional[int] = Field(default=None, ge=0)
    field_type: Optional[FieldType] = None
    opaque_blob: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.name or self.ticker or self.decimals is not None or self.field_type or self.opaque_blob)


class BaseToken(BaseModel):
    """The network's native unit, used when an operation names no token."""

    model_config = ConfigDict(frozen=True)

    ticker: str = "KTA"
    name: str = "Keeta Token"
    decimals: int = Field(default=9, ge=0)
    field_type: FieldType = "decimalPlaces"

    def metadata(self) -> TokenMetadata:
        return TokenMetadata(
            name=self.name,
            ticker=self.ticker,
            decimals=self.decimals,
            field_type=self.field_type,
        )


class BlockRef(BaseModel):
    """Reference to the ledger block an operation belongs to."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    hash: str = Field(alias="$hash", min_length=1)
    date: Optional[datetime] = None
    account: Optional[str] = None
    is_placeholder_date: bool = False


class CanonicalOperation(BaseModel):
    """Normalized representation of one ledger activity entry."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    type: str = Field(min_length=1)
    block: Optional[BlockRef] = None
    raw_amount: str = "0"
    formatted_amount: str = ""
    token: str = ""
    token_ticker: Optional[str] = None
    token_decimals: Optional[int] = Field(default=None, ge=0)
    token_metadata: Optional[TokenMetadata] = None
    token_lookup_id: str = ""
    from_address: str = Field(default="", alias="from")
    to_address: str = Field(default="", alias="to")
    row_id: str = ""
    block_timestamp: Optional[int] = None

    @field_validator("block", mode="before")
    @classmethod
    def _block_from_hash(cls, value: object) -> object:
        if isinstance(value, str):
            return {"hash": value} if value.strip() else None
        return value

    @field_validator("raw_amount", mode="before")
    @classmethod
    def _integer_text(cls, value: object) -> str:
        return str(parse_base_units(value))

    @property
    def block_hash(self) -> Optional[str]:
        return self.block.hash if self.block is not None else None

    @property
    def amount(self) -> int:
        return int(self.raw_amount)


class BlockSummary(CanonicalOperation):
    """Synthetic operation netting several operations of one block."""

    grouped_combined: bool = True
    grouped_count: int = Field(ge=2)


class NormalizedHistory(BaseModel):
    """Result of normalizing one batch of history records."""

    operations: list[CanonicalOperation] = Field(default_factory=list)
    tokens_to_fetch: list[str] = Field(default_factory=list)
    blocks_to_fetch: list[str] = Field(default_factory=list)
