"""
Field Registry — the single source of truth for the data-exchange schema.

``build_registry`` turns the declarative ``schema.SCHEMA`` description into
immutable ``TableSchema`` / ``FieldSpec`` objects, deriving each field's
semantic type and validator chain, and attaches the upsert policy chosen
for every table.  It checks the registry's invariants up front and raises
``RegistryError`` on the first violation, so a broken description fails at
startup rather than halfway through an import.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field as dc_field
from typing import Any, Callable

from buildtrack.core.exceptions import NotFoundError
from buildtrack.services.data_exchange import types as T
from buildtrack.services.data_exchange.schema import FIRST_ENUM, NO_DEFAULT, SCHEMA

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """The schema description violates a registry invariant."""


class UnknownTableError(NotFoundError):
    def __init__(self, table: str) -> None:
        super().__init__(resource="Table", resource_id=table)
        self.table = table


# ═══════════════════════════════════════════════════════════════
# DATA TYPES
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FieldSpec:
    name: str
    storage: str
    semantic_type: T.SemanticType
    required: bool = False
    unique: bool = False
    max_length: int | None = None
    enum_domain: tuple[str, ...] | None = None
    references: str | None = None
    ensure: bool = False
    primary_key: bool = False
    auto_managed: bool = False
    default: Any = NO_DEFAULT
    validators: tuple[Callable, ...] = dc_field(default=(), compare=False, repr=False)

    @property
    def uploadable(self) -> bool:
        return not (self.auto_managed or self.primary_key)

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    def transform(self, raw):
        return self.semantic_type.transform(raw, self)

    def validate(self, value) -> list[str]:
        errors = []
        for check in self.validators:
            message = check(value)
            if message:
                errors.append(message)
        return errors

    def default_for(self, values: dict):
        """Value filled in on create when the field is absent."""
        if self.default is FIRST_ENUM:
            return self.enum_domain[0]
        if callable(self.default):
            return self.default(values)
        return self.default

    def sample(self):
        return self.semantic_type.sample(self)

    def to_cell(self, value):
        return self.semantic_type.to_cell(value)

    def describe(self) -> dict:
        return {
            "name": self.name,
            "type": self.semantic_type.name,
            "storage": self.storage,
            "required": self.required,
            "unique": self.unique,
            "maxLength": self.max_length,
            "enum": list(self.enum_domain) if self.enum_domain else None,
            "references": self.references,
            "primaryKey": self.primary_key,
            "autoManaged": self.auto_managed,
            "uploadable": self.uploadable,
        }


@dataclass(frozen=True)
class Relationship:
    field: str
    table: str
    required: bool
    ensure: bool


@dataclass(frozen=True)
class TableSchema:
    name: str
    fields: tuple[FieldSpec, ...]
    relationships: tuple[Relationship, ...]

    @property
    def field_names(self) -> list[str]:
        return [spec.name for spec in self.fields]

    @property
    def uploadable_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.uploadable)

    @property
    def primary_key(self) -> FieldSpec:
        return next(spec for spec in self.fields if spec.primary_key)

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ").title()

    def field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None


# ═══════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════

class FieldRegistry:
    """Read-only lookup over the built table schemas and their policies."""

    def __init__(self, tables: dict[str, TableSchema], policies: dict):
        self._tables = dict(tables)
        self._policies = dict(policies)

    def __contains__(self, name) -> bool:
        return name in self._tables

    def __iter__(self):
        return iter(self._tables.values())

    def __len__(self):
        return len(self._tables)

    def list_tables(self) -> list[str]:
        return list(self._tables)

    def describe_table(self, name: str) -> TableSchema | None:
        return self._tables.get(name)

    def require(self, name: str) -> TableSchema:
        schema = self._tables.get(name)
        if schema is None:
            raise UnknownTableError(name)
        return schema

    def uploadable_fields(self, name: str) -> tuple[FieldSpec, ...]:
        return self.require(name).uploadable_fields

    def field(self, table: str, name: str) -> FieldSpec:
        spec = self.require(table).field(name)
        if spec is None:
            raise NotFoundError(resource="Field", resource_id=f"{table}.{name}")
        return spec

    def policy(self, name: str):
        self.require(name)
        return self._policies[name]

    def sample_row(self, name: str) -> dict:
        return {spec.name: spec.sample() for spec in self.uploadable_fields(name)}

    def referencing(self, name: str) -> list[tuple[str, str]]:
        """(table, field) pairs whose relationship points at ``name``."""
        return [
            (schema.name, rel.field)
            for schema in self._tables.values()
            for rel in schema.relationships
            if rel.table == name
        ]

    def fill_defaults(self, name: str, values: dict) -> dict:
        """Copy of ``values`` with defaults and stub placeholders filled in.

        Fields with a declared default get it when absent, or when blank
        and required.  Required fields still missing after that (stubs
        only; uploaded rows were validated) get the semantic type's
        placeholder.  Required references are left to the caller, which
        resolves them against parent tables.
        """
        filled = dict(values)
        for spec in self.uploadable_fields(name):
            if spec.name in filled and (filled[spec.name] is not None or not spec.required):
                continue
            if spec.has_default:
                filled[spec.name] = spec.default_for(filled)
            elif spec.required and not spec.references:
                filled[spec.name] = spec.semantic_type.placeholder(spec)
        return filled


# ═══════════════════════════════════════════════════════════════
# BUILDER
# ═══════════════════════════════════════════════════════════════

def _is_percent_field(name: str) -> bool:
    lowered = name.lower()
    return lowered == "progress" or lowered.endswith(("progress", "percent"))


def derive_semantic_type(table: str, desc) -> T.SemanticType:
    storage = desc.storage
    if desc.enum and storage not in ("Enum", "Enum[]", "String[]"):
        raise RegistryError(f"{table}.{desc.name}: enum domain on non-enum storage {storage!r}")
    if storage == "Enum":
        if not desc.enum:
            raise RegistryError(f"{table}.{desc.name}: Enum field without a domain")
        return T.EnumValue()
    if storage == "Enum[]" or (storage == "String[]" and desc.enum):
        if not desc.enum:
            raise RegistryError(f"{table}.{desc.name}: Enum[] field without a domain")
        return T.EnumSet()
    if storage == "String[]":
        return T.StringSet()
    if storage == "Int":
        return T.Integer(percent=_is_percent_field(desc.name))
    if storage == "Decimal":
        return T.Decimal(percent=_is_percent_field(desc.name))
    if storage == "Boolean":
        return T.Boolean()
    if storage == "DateTime":
        return T.Timestamp()
    if storage == "Json":
        return T.JsonBlob()
    if storage == "String":
        lowered = desc.name.lower()
        if "email" in lowered:
            return T.Email()
        if "phone" in lowered:
            return T.Phone()
        return T.Text()
    raise RegistryError(f"{table}.{desc.name}: unknown storage kind {storage!r}")


def _validator_chain(spec: FieldSpec) -> tuple:
    chain = []
    # A declared default or an ensured parent satisfies a missing value
    if spec.required and spec.uploadable and not spec.has_default and not spec.ensure:
        chain.append(T.required_validator(spec.name))
    chain.extend(spec.semantic_type.validators(spec))
    return tuple(chain)


def _build_field(table: str, desc) -> FieldSpec:
    if (desc.auto_managed or desc.primary_key) and desc.required:
        raise RegistryError(f"{table}.{desc.name}: auto-managed fields cannot be required")
    spec = FieldSpec(
        name=desc.name,
        storage=desc.storage,
        semantic_type=derive_semantic_type(table, desc),
        required=desc.required,
        unique=desc.unique,
        max_length=desc.max_length,
        enum_domain=tuple(desc.enum) if desc.enum else None,
        references=desc.references,
        ensure=desc.ensure,
        primary_key=desc.primary_key,
        auto_managed=desc.auto_managed,
        default=desc.default,
    )
    if spec.default is FIRST_ENUM and not spec.enum_domain:
        raise RegistryError(f"{table}.{desc.name}: enum default without a domain")
    return _with_validators(spec)


def _with_validators(spec: FieldSpec) -> FieldSpec:
    # FieldSpec is frozen; validators depend on the finished spec
    object.__setattr__(spec, "validators", _validator_chain(spec))
    return spec


def build_registry(description=None, policies=None) -> FieldRegistry:
    """Build and check a registry from a schema description.

    ``policies`` maps table name → upsert policy; tables without an entry
    get an append-only policy.
    """
    from buildtrack.services.data_exchange.policies import AppendOnlyPolicy, DEFAULT_POLICIES

    description = SCHEMA if description is None else description
    policies = DEFAULT_POLICIES if policies is None else policies

    tables: dict[str, TableSchema] = {}
    for table, descriptions in description.items():
        names = [desc.name for desc in descriptions]
        if len(set(names)) != len(names):
            raise RegistryError(f"{table}: duplicate field names")
        fields = tuple(_build_field(table, desc) for desc in descriptions)
        if sum(1 for spec in fields if spec.primary_key) != 1:
            raise RegistryError(f"{table}: exactly one primary key field is required")
        relationships = tuple(
            Relationship(spec.name, spec.references, spec.required, spec.ensure)
            for spec in fields
            if spec.references
        )
        tables[table] = TableSchema(table, fields, relationships)

    for schema in tables.values():
        for rel in schema.relationships:
            if schema.field(rel.field) is None:
                raise RegistryError(f"{schema.name}: relationship on unknown field {rel.field}")
            if rel.table not in tables:
                raise RegistryError(f"{schema.name}.{rel.field}: references unknown table {rel.table}")

    unknown = set(policies) - set(tables)
    if unknown:
        raise RegistryError(f"policies for unknown tables: {sorted(unknown)}")

    resolved = {}
    for name, schema in tables.items():
        policy = policies.get(name) or AppendOnlyPolicy()
        policy.check(schema)
        resolved[name] = policy

    logger.debug("Field registry built: %d tables", len(tables))
    return FieldRegistry(tables, resolved)


_registry: FieldRegistry | None = None


def get_registry() -> FieldRegistry:
    """Process-wide registry, built on first use."""
    global _registry
    if _registry is None:
        _registry = build_registry()
    return _registry
