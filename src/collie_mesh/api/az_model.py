from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..util.errors import PlatformQueryError

# Column layout of a daily cost query grouped by subscription.
COST_COLUMNS: Tuple[str, ...] = ("PreTaxCost", "UsageDate", "SubscriptionId", "Currency")


def _str(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    return default if value is None else str(value)


def _require(data: Mapping[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if value is None or str(value) == "":
        raise PlatformQueryError(f"{what} is missing '{key}'")
    return str(value)


@dataclass(frozen=True)
class User:
    name: str
    type: str


@dataclass(frozen=True)
class Account:
    """Output of `az account show`."""

    id: str
    tenant_id: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Account:
        return cls(id=_require(data, "id", "account"), tenant_id=_require(data, "tenantId", "account"))


@dataclass(frozen=True)
class Subscription:
    id: str
    name: str
    tenant_id: str
    home_tenant_id: str = ""
    cloud_name: str = ""
    is_default: bool = False
    state: str = ""
    user: Optional[User] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Subscription:
        if not is_subscription(data):
            raise PlatformQueryError("subscription record is missing 'id' or 'tenantId'")
        user = data.get("user")
        return cls(
            id=str(data["id"]),
            name=_str(data, "name"),
            tenant_id=str(data["tenantId"]),
            home_tenant_id=_str(data, "homeTenantId"),
            cloud_name=_str(data, "cloudName"),
            is_default=bool(data.get("isDefault")),
            state=_str(data, "state"),
            user=User(name=_str(user, "name"), type=_str(user, "type")) if isinstance(user, Mapping) else None,
        )


@dataclass(frozen=True)
class TagValue:
    tag_value: str
    count: int = 0
    id: str = ""


@dataclass(frozen=True)
class Tag:
    tag_name: str
    values: Tuple[TagValue, ...] = ()
    count: int = 0
    id: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Tag:
        values = []
        for v in data.get("values") or []:
            if not isinstance(v, Mapping):
                raise PlatformQueryError("tag value must be an object")
            values.append(
                TagValue(tag_value=_str(v, "tagValue"), count=_count(v.get("count")), id=_str(v, "id"))
            )
        return cls(
            tag_name=_require(data, "tagName", "tag"),
            values=tuple(values),
            count=_count(data.get("count")),
            id=_str(data, "id"),
        )


def _count(raw: Any) -> int:
    if isinstance(raw, Mapping):
        raw = raw.get("value")
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class ManagementGroup:
    id: str
    name: str
    display_name: str
    tenant_id: str
    type: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ManagementGroup:
        return cls(
            id=_require(data, "id", "management group"),
            name=_str(data, "name"),
            display_name=_str(data, "displayName"),
            tenant_id=_str(data, "tenantId"),
            type=_str(data, "type"),
        )


@dataclass(frozen=True)
class CostColumn:
    name: str
    type: str


@dataclass(frozen=True)
class CostManagementInfo:
    id: str
    name: str
    columns: Tuple[CostColumn, ...]
    rows: Tuple[Tuple[Any, ...], ...]
    next_link: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CostManagementInfo:
        # `az costmanagement query` nests the table under "properties" in some versions
        props = data.get("properties") if isinstance(data.get("properties"), Mapping) else data
        columns = []
        for col in props.get("columns") or []:
            if not isinstance(col, Mapping):
                raise PlatformQueryError("cost column must be an object")
            columns.append(CostColumn(name=_str(col, "name"), type=_str(col, "type")))
        rows = []
        for row in props.get("rows") or []:
            if not isinstance(row, (list, tuple)):
                raise PlatformQueryError("cost row must be a list")
            rows.append(tuple(row))
        return cls(
            id=_str(data, "id"),
            name=_str(data, "name"),
            columns=tuple(columns),
            rows=tuple(rows),
            next_link=props.get("nextLink") or props.get("nextLinks"),
        )


@dataclass(frozen=True)
class SimpleCostManagementInfo:
    amount: Any
    date: Any
    subscription_id: str
    currency: str


@dataclass(frozen=True)
class RoleAssignment:
    principal_id: str
    principal_name: str
    principal_type: str
    role_definition_id: str
    role_definition_name: str
    scope: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RoleAssignment:
        return cls(
            principal_id=_str(data, "principalId"),
            principal_name=_str(data, "principalName"),
            principal_type=_str(data, "principalType"),
            role_definition_id=_str(data, "roleDefinitionId"),
            role_definition_name=_str(data, "roleDefinitionName"),
            scope=_str(data, "scope"),
        )

    @property
    def scope_kind(self) -> str:
        """
        "root" for "/", "managementGroup" for /providers/Microsoft.Management/managementGroups/<id>,
        "subscription" for /subscriptions/<id>, "other" for anything narrower.
        """
        scope = self.scope.rstrip("/")
        if not scope:
            return "root"
        parts = scope.strip("/").split("/")
        if len(parts) == 4 and parts[:3] == ["providers", "Microsoft.Management", "managementGroups"]:
            return "managementGroup"
        if len(parts) == 2 and parts[0] == "subscriptions":
            return "subscription"
        return "other"


def is_subscription(obj: Any) -> bool:
    return isinstance(obj, Mapping) and "tenantId" in obj and "id" in obj


def tags_from_resource(data: Mapping[str, Any]) -> List[Tag]:
    """
    Convert the `az tag list --resource-id` shape ({"properties": {"tags": {k: v}}})
    into Tag records with a single value each.
    """
    props = data.get("properties")
    tags: Dict[str, Any] = {}
    if isinstance(props, Mapping) and isinstance(props.get("tags"), Mapping):
        tags = dict(props["tags"])
    return [
        Tag(tag_name=str(k), values=(TagValue(tag_value="" if v is None else str(v)),)) for k, v in sorted(tags.items())
    ]
