from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping

from ..util.errors import PlatformQueryError
from ..util.time import parse_iso_date


@dataclass(frozen=True)
class Account:
    """Entry of `aws organizations list-accounts`."""

    id: str
    name: str
    email: str = ""
    status: str = ""
    arn: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Account:
        account_id = data.get("Id")
        if not account_id:
            raise PlatformQueryError("account record is missing 'Id'")
        return cls(
            id=str(account_id),
            name=str(data.get("Name") or ""),
            email=str(data.get("Email") or ""),
            status=str(data.get("Status") or ""),
            arn=str(data.get("Arn") or ""),
        )


@dataclass(frozen=True)
class Tag:
    key: str
    value: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Tag:
        key = data.get("Key")
        if key is None:
            raise PlatformQueryError("tag record is missing 'Key'")
        return cls(key=str(key), value=str(data.get("Value") or ""))


@dataclass(frozen=True)
class CostRow:
    """One LINKED_ACCOUNT group of a `aws ce get-cost-and-usage` time period."""

    account_id: str
    start: date
    amount: Decimal
    unit: str


def cost_rows_from_response(data: Mapping[str, Any], metric: str) -> List[CostRow]:
    rows: List[CostRow] = []
    for period in data.get("ResultsByTime") or []:
        if not isinstance(period, Mapping):
            raise PlatformQueryError("ResultsByTime entry must be an object")
        time_period = period.get("TimePeriod") or {}
        try:
            start = parse_iso_date(str(time_period.get("Start") or ""))
        except ValueError as e:
            raise PlatformQueryError(f"Invalid cost time period: {e}") from e
        for group in period.get("Groups") or []:
            keys = group.get("Keys") or []
            if len(keys) != 1:
                raise PlatformQueryError(f"Expected one group key (LINKED_ACCOUNT), got {len(keys)}")
            value = (group.get("Metrics") or {}).get(metric) or {}
            try:
                amount = Decimal(str(value.get("Amount")))
            except (InvalidOperation, TypeError) as e:
                raise PlatformQueryError(f"Invalid {metric} amount: {value.get('Amount')!r}") from e
            rows.append(CostRow(account_id=str(keys[0]), start=start, amount=amount, unit=str(value.get("Unit") or "")))
    return rows
