# app/core/schema_catalog.py
"""
Static description of the queryable CRM tables.

The catalog is an immutable value built once at start-up and handed to the
classifier, builder and analyzer. Tests can build their own with SchemaCatalog(...).
"""
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict

from .exceptions import CatalogError
from ..models.intent import split_column_ref

CATALOG_VERSION = "2024.11.1"


class ColumnType(str, Enum):
    INTEGER = "integer"
    DECIMAL = "decimal"
    TEXT = "text"
    BOOLEAN = "boolean"
    ENUM = "enum"
    TIMESTAMP = "timestamp"
    DATE = "date"
    JSON = "jsonb"


NUMERIC_TYPES = (ColumnType.INTEGER, ColumnType.DECIMAL)
TIME_TYPES = (ColumnType.TIMESTAMP, ColumnType.DATE)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ColumnSpec(_Frozen):
    name: str
    type: ColumnType
    nullable: bool = True
    indexed: bool = False
    enum_values: Tuple[str, ...] = ()
    description: str = ""

    @property
    def is_numeric(self) -> bool:
        return self.type in NUMERIC_TYPES

    @property
    def is_time(self) -> bool:
        return self.type in TIME_TYPES

    @property
    def is_key(self) -> bool:
        return self.name == "id" or self.name.endswith("_id")


class OwnershipLink(_Frozen):
    """Ownership resolved through a related table: EXISTS (SELECT 1 FROM via WHERE via.via_column = t.local_column ...)"""
    via_table: str
    via_column: str
    local_column: str = "id"


class TableSpec(_Frozen):
    name: str
    label: str
    description: str = ""
    columns: Tuple[ColumnSpec, ...]
    owner_columns: Tuple[str, ...] = ()
    owned_through: Optional[OwnershipLink] = None
    timestamp_column: Optional[str] = None
    name_column: Optional[str] = None
    primary_measure: Optional[str] = None
    size_estimate: int = 1000
    small: bool = False
    union_group: Optional[str] = None

    def get_column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)


class Relationship(_Frozen):
    """Foreign key from_table.from_column -> to_table.to_column"""
    from_table: str
    from_column: str
    to_table: str
    to_column: str = "id"
    nullable: bool = True

    def other_side(self, table: str) -> Optional[str]:
        if table == self.from_table:
            return self.to_table
        if table == self.to_table:
            return self.from_table
        return None

    def condition(self) -> str:
        return f"{self.from_table}.{self.from_column} = {self.to_table}.{self.to_column}"


class SchemaCatalog:
    """
    Read-only lookup over tables, columns, indexes and relationships.

    Lookups of unknown tables or columns raise CatalogError.
    """

    def __init__(self, tables: Iterable[TableSpec], relationships: Iterable[Relationship], version: str = CATALOG_VERSION):
        table_map: Dict[str, TableSpec] = {}
        for table in tables:
            if table.name in table_map:
                raise CatalogError(f"Duplicate table '{table.name}' in catalog")
            table_map[table.name] = table
        self._tables: Mapping[str, TableSpec] = MappingProxyType(table_map)
        self._relationships: Tuple[Relationship, ...] = tuple(relationships)
        self._version = version
        self._check_integrity()

    def _check_integrity(self):
        for rel in self._relationships:
            self.column(f"{rel.from_table}.{rel.from_column}")
            self.column(f"{rel.to_table}.{rel.to_column}")
        for table in self._tables.values():
            for name in table.owner_columns + tuple(c for c in (table.timestamp_column, table.name_column, table.primary_measure) if c):
                self.column(f"{table.name}.{name}")
            if table.owned_through:
                link = table.owned_through
                self.column(f"{link.via_table}.{link.via_column}")
                self.column(f"{table.name}.{link.local_column}")

    @property
    def version(self) -> str:
        return self._version

    @property
    def table_names(self) -> Tuple[str, ...]:
        return tuple(self._tables.keys())

    @property
    def relationships(self) -> Tuple[Relationship, ...]:
        return self._relationships

    def __iter__(self) -> Iterator[TableSpec]:
        return iter(self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)

    def has_table(self, name: str) -> bool:
        return name in self._tables

    def table(self, name: str) -> TableSpec:
        try:
            return self._tables[name]
        except KeyError:
            raise CatalogError(f"Unknown table '{name}'") from None

    def has_column(self, ref: str) -> bool:
        try:
            self.column(ref)
        except CatalogError:
            return False
        return True

    def column(self, ref: str) -> ColumnSpec:
        """Resolve a 'table.column' reference"""
        try:
            table_name, column_name = split_column_ref(ref)
        except ValueError as e:
            raise CatalogError(str(e)) from e
        column = self.table(table_name).get_column(column_name)
        if column is None:
            raise CatalogError(f"Unknown column '{column_name}' on table '{table_name}'")
        return column

    def is_indexed(self, ref: str) -> bool:
        return self.has_column(ref) and self.column(ref).indexed

    def is_time_column(self, ref: Optional[str]) -> bool:
        return bool(ref) and self.has_column(ref) and self.column(ref).is_time

    def measure_columns(self, table: str) -> List[str]:
        """Numeric, non-key columns that can be summed or averaged"""
        return [c.name for c in self.table(table).columns if c.is_numeric and not c.is_key]

    def relationships_for(self, table: str) -> List[Relationship]:
        """Relationships touching a table, in declaration order"""
        return [rel for rel in self._relationships if rel.other_side(table) is not None]

    def union_members(self, group: str) -> Tuple[str, ...]:
        return tuple(t.name for t in self._tables.values() if t.union_group == group)

    def shared_columns(self, tables: Iterable[str]) -> List[str]:
        """Columns present on every table, in the first table's order"""
        specs = [self.table(t) for t in tables]
        if not specs:
            return []
        return [c for c in specs[0].column_names if all(s.get_column(c) for s in specs[1:])]

    def enum_columns(self) -> Iterator[Tuple[str, ColumnSpec]]:
        for table in self._tables.values():
            for column in table.columns:
                if column.enum_values:
                    yield f"{table.name}.{column.name}", column

    def with_size_overrides(self, overrides: Optional[Dict[str, int]]) -> "SchemaCatalog":
        """Copy of the catalog with declared size estimates replaced"""
        if not overrides:
            return self
        tables = []
        for table in self._tables.values():
            if table.name in overrides:
                tables.append(table.model_copy(update={"size_estimate": int(overrides[table.name])}))
            else:
                tables.append(table)
        unknown = set(overrides) - set(self._tables)
        if unknown:
            raise CatalogError(f"Size overrides for unknown tables: {', '.join(sorted(unknown))}")
        logger.info(f"Applied table size overrides: {overrides}")
        return SchemaCatalog(tables, self._relationships, self._version)

    def describe(self) -> Dict[str, Dict]:
        """Compact description used in prompts and usage documents"""
        return {
            t.name: {
                "description": t.description,
                "columns": {c.name: c.type.value for c in t.columns},
                "enums": {c.name: list(c.enum_values) for c in t.columns if c.enum_values},
            }
            for t in self._tables.values()
        }


def _col(name: str, type_: ColumnType, nullable: bool = True, indexed: bool = False, enum=(), description: str = "") -> ColumnSpec:
    return ColumnSpec(name=name, type=type_, nullable=nullable, indexed=indexed, enum_values=tuple(enum), description=description)


def _id() -> ColumnSpec:
    return _col("id", ColumnType.INTEGER, nullable=False, indexed=True, description="Primary key")


def _audit_columns() -> Tuple[ColumnSpec, ...]:
    return (
        _col("created_at", ColumnType.TIMESTAMP, nullable=False, indexed=True),
        _col("updated_at", ColumnType.TIMESTAMP, nullable=False),
    )


COMPANY_STAGES = ("Enterprise", "SMB", "Pan India", "APAC", "Middle East & Africa", "Europe", "North America", "LATAM_SouthAmerica")
COMPANY_TAGS = ("New", "Prospect", "Customer", "Onboard", "Lapsed", "Needs Attention", "Retention", "Renewal", "Upselling")
CALL_STATUSES = ("Connected", "DNP", "ATCBL", "Unable to connect", "Number doesn't exist", "Wrong number")
ACTIVITY_TYPES = ("call", "note", "followup", "quotation", "email", "task", "meeting")
TASK_STATUSES = ("Pending", "In Progress", "Completed", "Cancelled")
LEAD_STATUSES = ("New", "In Progress", "Follow-up", "Quotation Sent", "Converted", "Lost")
QUOTE_STATUSES = ("draft", "sent", "accepted", "rejected")


def _quote_table(name: str, label: str, size: int, product_columns: Tuple[ColumnSpec, ...], created_by_indexed: bool) -> TableSpec:
    return TableSpec(
        name=name,
        label=label,
        description=f"{label.capitalize()} issued to sub-accounts",
        columns=(
            _id(),
            _col("section", ColumnType.TEXT, nullable=False, description="Product section"),
            _col("sub_account_id", ColumnType.INTEGER, nullable=False, indexed=True),
            _col("state_id", ColumnType.INTEGER, indexed=True),
            _col("city_id", ColumnType.INTEGER, indexed=True),
            _col("customer_name", ColumnType.TEXT, nullable=False),
            _col("purpose", ColumnType.TEXT),
            _col("date", ColumnType.TEXT, nullable=False, description="Quotation date as entered (free text)"),
            _col("final_total_cost", ColumnType.DECIMAL),
            _col("ai_win_probability", ColumnType.DECIMAL, description="AI-calculated win probability (0-100)"),
            _col("status", ColumnType.ENUM, nullable=False, indexed=True, enum=QUOTE_STATUSES),
            _col("created_by", ColumnType.TEXT, indexed=created_by_indexed),
        ) + product_columns + _audit_columns(),
        owner_columns=("created_by",),
        timestamp_column="created_at",
        name_column="customer_name",
        primary_measure="final_total_cost",
        size_estimate=size,
        union_group="quotes",
    )


def build_crm_catalog(size_overrides: Optional[Dict[str, int]] = None) -> SchemaCatalog:
    """
    Build the versioned CRM catalog

    Args:
        size_overrides: Optional table -> row estimate replacements

    Returns:
        Immutable SchemaCatalog
    """
    tables = [
        TableSpec(
            name="accounts",
            label="accounts",
            description="Parent companies; owned through their sub-accounts",
            columns=(
                _id(),
                _col("account_name", ColumnType.TEXT, nullable=False),
                _col("company_stage", ColumnType.ENUM, nullable=False, enum=COMPANY_STAGES),
                _col("company_tag", ColumnType.ENUM, nullable=False, enum=COMPANY_TAGS),
                _col("state_id", ColumnType.INTEGER, indexed=True),
                _col("city_id", ColumnType.INTEGER, indexed=True),
                _col("industry", ColumnType.TEXT),
                _col("is_active", ColumnType.BOOLEAN, nullable=False, indexed=True),
                _col("engagement_score", ColumnType.DECIMAL, description="AI-calculated engagement score (0-100)"),
                _col("potential_value", ColumnType.DECIMAL, description="Estimated potential revenue value"),
                _col("last_activity_at", ColumnType.TIMESTAMP),
            ) + _audit_columns(),
            owned_through=OwnershipLink(via_table="sub_accounts", via_column="account_id"),
            timestamp_column="created_at",
            name_column="account_name",
            primary_measure="engagement_score",
            size_estimate=500,
        ),
        TableSpec(
            name="sub_accounts",
            label="sub-accounts",
            description="Branches of an account assigned to one employee",
            columns=(
                _id(),
                _col("account_id", ColumnType.INTEGER, nullable=False, indexed=True),
                _col("sub_account_name", ColumnType.TEXT, nullable=False),
                _col("assigned_employee", ColumnType.TEXT, nullable=False, indexed=True),
                _col("engagement_score", ColumnType.DECIMAL, description="AI-calculated engagement score (0-100)"),
                _col("is_active", ColumnType.BOOLEAN, nullable=False, indexed=True),
            ) + _audit_columns(),
            owner_columns=("assigned_employee",),
            timestamp_column="created_at",
            name_column="sub_account_name",
            primary_measure="engagement_score",
            size_estimate=2000,
        ),
        TableSpec(
            name="contacts",
            label="contacts",
            description="People at accounts and sub-accounts",
            columns=(
                _id(),
                _col("account_id", ColumnType.INTEGER, nullable=False, indexed=True),
                _col("sub_account_id", ColumnType.INTEGER, nullable=False, indexed=True),
                _col("name", ColumnType.TEXT, nullable=False),
                _col("designation", ColumnType.TEXT),
                _col("email", ColumnType.TEXT),
                _col("phone", ColumnType.TEXT),
                _col("call_status", ColumnType.ENUM, enum=CALL_STATUSES),
                _col("follow_up_date", ColumnType.TIMESTAMP, indexed=True),
                _col("created_by", ColumnType.TEXT, nullable=False, indexed=True),
            ) + _audit_columns(),
            owner_columns=("created_by",),
            timestamp_column="created_at",
            name_column="name",
            size_estimate=1000,
        ),
        TableSpec(
            name="activities",
            label="activities",
            description="Calls, meetings, emails and notes logged by employees",
            columns=(
                _id(),
                _col("account_id", ColumnType.INTEGER, indexed=True),
                _col("sub_account_id", ColumnType.INTEGER, indexed=True),
                _col("contact_id", ColumnType.INTEGER),
                _col("employee_id", ColumnType.TEXT, nullable=False, indexed=True),
                _col("activity_type", ColumnType.ENUM, nullable=False, enum=ACTIVITY_TYPES),
                _col("description", ColumnType.TEXT, nullable=False),
                _col("created_at", ColumnType.TIMESTAMP, nullable=False, indexed=True),
            ),
            owner_columns=("employee_id",),
            timestamp_column="created_at",
            size_estimate=5000,
        ),
        TableSpec(
            name="tasks",
            label="tasks",
            description="Follow-ups and to-dos assigned to employees",
            columns=(
                _id(),
                _col("title", ColumnType.TEXT, nullable=False),
                _col("account_id", ColumnType.INTEGER),
                _col("sub_account_id", ColumnType.INTEGER, indexed=True),
                _col("contact_id", ColumnType.INTEGER),
                _col("task_type", ColumnType.TEXT, nullable=False),
                _col("due_date", ColumnType.TIMESTAMP, indexed=True),
                _col("status", ColumnType.ENUM, nullable=False, indexed=True, enum=TASK_STATUSES),
                _col("assigned_employee", ColumnType.TEXT, nullable=False, indexed=True),
                _col("created_by", ColumnType.TEXT, nullable=False),
            ) + _audit_columns(),
            owner_columns=("assigned_employee", "created_by"),
            timestamp_column="created_at",
            name_column="title",
            size_estimate=400,
        ),
        TableSpec(
            name="leads",
            label="leads",
            description="Sales leads moving through the pipeline",
            columns=(
                _id(),
                _col("lead_name", ColumnType.TEXT, nullable=False),
                _col("contact_person", ColumnType.TEXT),
                _col("lead_source", ColumnType.TEXT),
                _col("status", ColumnType.ENUM, nullable=False, indexed=True, enum=LEAD_STATUSES),
                _col("score", ColumnType.DECIMAL, description="Lead score/quality rating"),
                _col("assigned_employee", ColumnType.TEXT, nullable=False, indexed=True),
                _col("account_id", ColumnType.INTEGER),
                _col("sub_account_id", ColumnType.INTEGER),
                _col("created_by", ColumnType.TEXT, nullable=False),
            ) + _audit_columns(),
            owner_columns=("assigned_employee", "created_by"),
            timestamp_column="created_at",
            name_column="lead_name",
            primary_measure="score",
            size_estimate=800,
        ),
        _quote_table(
            "quotes_mbcb", "MBCB quotations", 300,
            (
                _col("quantity_rm", ColumnType.DECIMAL),
                _col("total_weight_per_rm", ColumnType.DECIMAL),
                _col("total_cost_per_rm", ColumnType.DECIMAL),
            ),
            created_by_indexed=True,
        ),
        _quote_table(
            "quotes_signages", "signage quotations", 200,
            (
                _col("quantity", ColumnType.DECIMAL),
                _col("area_sq_ft", ColumnType.DECIMAL),
                _col("cost_per_piece", ColumnType.DECIMAL),
            ),
            created_by_indexed=False,
        ),
        _quote_table(
            "quotes_paint", "paint quotations", 150,
            (
                _col("quantity", ColumnType.DECIMAL),
                _col("area_sq_ft", ColumnType.DECIMAL),
                _col("cost_per_piece", ColumnType.DECIMAL),
            ),
            created_by_indexed=False,
        ),
        TableSpec(
            name="users",
            label="employees",
            description="CRM users and their roles",
            columns=(
                _id(),
                _col("username", ColumnType.TEXT, nullable=False, indexed=True),
                _col("full_name", ColumnType.TEXT),
                _col("email", ColumnType.TEXT, nullable=False, indexed=True),
                _col("role", ColumnType.TEXT, nullable=False),
                _col("is_active", ColumnType.BOOLEAN, nullable=False),
                _col("created_at", ColumnType.TIMESTAMP, nullable=False),
            ),
            owner_columns=("username",),
            timestamp_column="created_at",
            name_column="full_name",
            size_estimate=50,
            small=True,
        ),
    ]

    relationships = [
        Relationship(from_table="contacts", from_column="account_id", to_table="accounts", nullable=False),
        Relationship(from_table="contacts", from_column="sub_account_id", to_table="sub_accounts", nullable=False),
        Relationship(from_table="sub_accounts", from_column="account_id", to_table="accounts", nullable=False),
        Relationship(from_table="sub_accounts", from_column="assigned_employee", to_table="users", to_column="username", nullable=False),
        Relationship(from_table="activities", from_column="sub_account_id", to_table="sub_accounts"),
        Relationship(from_table="activities", from_column="contact_id", to_table="contacts"),
        Relationship(from_table="activities", from_column="account_id", to_table="accounts"),
        Relationship(from_table="activities", from_column="employee_id", to_table="users", to_column="username", nullable=False),
        Relationship(from_table="tasks", from_column="sub_account_id", to_table="sub_accounts"),
        Relationship(from_table="tasks", from_column="contact_id", to_table="contacts"),
        Relationship(from_table="tasks", from_column="assigned_employee", to_table="users", to_column="username", nullable=False),
        Relationship(from_table="quotes_mbcb", from_column="sub_account_id", to_table="sub_accounts", nullable=False),
        Relationship(from_table="quotes_signages", from_column="sub_account_id", to_table="sub_accounts", nullable=False),
        Relationship(from_table="quotes_paint", from_column="sub_account_id", to_table="sub_accounts", nullable=False),
        Relationship(from_table="leads", from_column="assigned_employee", to_table="users", to_column="username", nullable=False),
        Relationship(from_table="leads", from_column="account_id", to_table="accounts"),
        Relationship(from_table="leads", from_column="sub_account_id", to_table="sub_accounts"),
    ]

    catalog = SchemaCatalog(tables, relationships, CATALOG_VERSION)
    logger.debug(f"Built CRM catalog v{catalog.version} with {len(catalog)} tables")
    return catalog.with_size_overrides(size_overrides)
