"""Stable identity keys for shop records from heterogeneous sources.

Internal shops carry a primary id once persisted, shops imported from a
third-party source carry an external place id, and hand-entered rows may carry
neither. The precedence is primary id, then external id, then display name.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Union

if TYPE_CHECKING:
    from .models import ShopRecord

logger = logging.getLogger(__name__)


class InvalidRecordError(ValueError):
    pass


@dataclass(frozen=True)
class PrimaryId:
    value: str

    @property
    def key(self) -> str:
        return f"id:{self.value}"


@dataclass(frozen=True)
class ExternalId:
    value: str

    @property
    def key(self) -> str:
        return f"ext:{self.value}"


@dataclass(frozen=True)
class NameFallback:
    value: str

    @property
    def key(self) -> str:
        return f"name:{self.value}"


Identity = Union[PrimaryId, ExternalId, NameFallback]


def _clean(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def resolve_identity(shop: "ShopRecord") -> Identity:
    primary = _clean(shop.primary_id)
    if primary:
        return PrimaryId(primary)
    external = _clean(shop.external_id)
    if external:
        return ExternalId(external)
    name = _clean(shop.display_name)
    if name:
        return NameFallback(name)
    raise InvalidRecordError("Shop record has no primary id, external id or name")


def resolve_key(shop: "ShopRecord") -> str:
    """Return the identity key for a shop, or "" when it has no identity."""
    try:
        return resolve_identity(shop).key
    except InvalidRecordError:
        return ""


def validate_records(shops: Iterable["ShopRecord"]) -> List["ShopRecord"]:
    valid: List["ShopRecord"] = []
    dropped = 0
    for index, shop in enumerate(shops):
        try:
            resolve_identity(shop)
        except InvalidRecordError as exc:
            dropped += 1
            logger.warning("Dropping shop record at position %s: %s", index, exc)
            continue
        valid.append(shop)
    if dropped:
        logger.info("Validation dropped %s of %s shop records", dropped, dropped + len(valid))
    return valid
