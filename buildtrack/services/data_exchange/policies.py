"""
Upsert Resolver — per-table strategies deciding whether an incoming record
updates an existing one or creates a new one.

Every table gets exactly one policy when the registry is built:

    NaturalKeyPolicy        match on one unique business field (email, ...)
    SurrogateKeyPolicy      match on a minted number, mint one when missing
    CompositeKeyPolicy      match on a tuple of fields, optional cleanup of
                            records absent from the upload
    EnsureDependentPolicy   match on the supplied id (or one natural field);
                            dangling parents are replaced by stubs
    AppendOnlyPolicy        always create

Shared behaviour lives on ``UpsertPolicy``: creating records with defaults
filled in, honouring a usable caller-supplied id, and resolving references
declared with ``ensure`` through ``ImportContext.ensure`` so a row never
fails just because its parent row was missing from the workbook.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import NamedTuple

from sqlalchemy.exc import SQLAlchemyError

from buildtrack.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

# Caller-supplied ids are reused verbatim only when they look like ids
ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:\-]{0,63}$")


class UpsertResult(NamedTuple):
    record_id: str
    created: bool


def usable_id(value) -> bool:
    return isinstance(value, str) and bool(ID_PATTERN.match(value))


# ═══════════════════════════════════════════════════════════════
# BASE
# ═══════════════════════════════════════════════════════════════

class UpsertPolicy:
    kind = "base"
    supports_cleanup = False
    identity_fields: tuple[str, ...] = ()

    def check(self, schema) -> None:
        """Fail registry construction when the policy does not fit ``schema``."""
        from buildtrack.services.data_exchange.registry import RegistryError

        for name in self.identity_fields:
            if schema.field(name) is None:
                raise RegistryError(f"{schema.name}: {self.kind} key field {name} is not declared")

    def upsert(self, schema, values: dict, supplied_id, ctx) -> UpsertResult:
        raise NotImplementedError

    def find_existing(self, schema, values: dict, ctx) -> dict | None:
        """Existing record sharing ``values``' identity, ignoring any id."""
        return None

    def stub_values(self, schema, seed: dict, ctx) -> dict:
        """Values for a stub record created to satisfy a dangling reference."""
        return dict(seed)

    def describe(self) -> dict:
        return {"kind": self.kind, "identity": list(self.identity_fields), "cleanup": self.supports_cleanup}

    # ── Shared steps ────────────────────────────────────────────────────

    def resolve_parents(self, schema, values: dict, ctx, creating: bool) -> None:
        for rel in schema.relationships:
            if not rel.ensure:
                continue
            value = values.get(rel.field)
            if value is None and not (creating and rel.required):
                continue
            values[rel.field] = ctx.ensure(rel.table, value, seed=ctx.seed_for(rel.table, values))

    def create(self, schema, values: dict, supplied_id, ctx) -> dict:
        values = dict(values)
        self.resolve_parents(schema, values, ctx, creating=True)
        values = ctx.registry.fill_defaults(schema.name, values)
        store = ctx.store(schema.name)
        record_id = None
        if usable_id(supplied_id) and store.find_by_primary_key(supplied_id) is None:
            record_id = supplied_id
        return store.create(values, record_id=record_id)

    def update(self, schema, existing: dict, values: dict, ctx) -> dict:
        values = dict(values)
        self.resolve_parents(schema, values, ctx, creating=False)
        return ctx.store(schema.name).update(existing["id"], values)

    def _write(self, schema, existing, values, supplied_id, ctx) -> UpsertResult:
        if existing is not None:
            record = self.update(schema, existing, values, ctx)
            return UpsertResult(record["id"], False)
        record = self.create(schema, values, supplied_id, ctx)
        return UpsertResult(record["id"], True)

    def __repr__(self):
        return f"<{type(self).__name__} {', '.join(self.identity_fields) or '-'}>"


# ═══════════════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════════════

class AppendOnlyPolicy(UpsertPolicy):
    kind = "append_only"

    def upsert(self, schema, values, supplied_id, ctx):
        return self._write(schema, None, values, supplied_id, ctx)


class NaturalKeyPolicy(UpsertPolicy):
    """Identity is one unique field; a supplied id only names a new record."""
    kind = "natural_key"

    def __init__(self, key_field, *, case_insensitive=True, stub_key=None, stub_defaults=None):
        self.key_field = key_field
        self.identity_fields = (key_field,)
        self.case_insensitive = case_insensitive
        self._stub_key = stub_key
        self.stub_defaults = dict(stub_defaults or {})

    def find_existing(self, schema, values, ctx):
        key = values.get(self.key_field)
        if key is None:
            return None
        return ctx.store(schema.name).find_by_unique_field(
            self.key_field, key, case_insensitive=self.case_insensitive,
        )

    def upsert(self, schema, values, supplied_id, ctx):
        existing = self.find_existing(schema, values, ctx)
        return self._write(schema, existing, values, supplied_id, ctx)

    def stub_values(self, schema, seed, ctx):
        values = {**self.stub_defaults, **seed}
        if values.get(self.key_field) is None:
            if self._stub_key is None:
                raise ValueError(f"cannot create a {schema.name} stub without {self.key_field}")
            values[self.key_field] = self._stub_key()
        return values


class SurrogateKeyPolicy(UpsertPolicy):
    """Identity is a minted integer; rows without one get the next number."""
    kind = "surrogate_key"

    def __init__(self, key_field):
        self.key_field = key_field
        self.identity_fields = (key_field,)

    def find_existing(self, schema, values, ctx):
        key = values.get(self.key_field)
        if key is None:
            return None
        return ctx.store(schema.name).find_by_unique_field(self.key_field, key)

    def upsert(self, schema, values, supplied_id, ctx):
        values = dict(values)
        if values.get(self.key_field) is None:
            existing = None
            if supplied_id is not None:
                existing = ctx.store(schema.name).find_by_primary_key(supplied_id)
            if existing is None:
                values[self.key_field] = ctx.sequence.next()
            else:
                values.pop(self.key_field, None)
        else:
            ctx.sequence.observe(values[self.key_field])
            existing = self.find_existing(schema, values, ctx)
        return self._write(schema, existing, values, supplied_id, ctx)

    def stub_values(self, schema, seed, ctx):
        values = dict(seed)
        if values.get(self.key_field) is None:
            values[self.key_field] = ctx.sequence.next()
        else:
            ctx.sequence.observe(values[self.key_field])
        return values


class CompositeKeyPolicy(UpsertPolicy):
    """Identity is a tuple of fields, then the supplied id.

    With ``cleanup`` enabled, records whose key tuple was not uploaded in
    this run are deleted afterwards, but only when nothing references them.
    """
    kind = "composite_key"

    def __init__(self, *key_fields, cleanup=False):
        self.identity_fields = tuple(key_fields)
        self.supports_cleanup = cleanup

    def identity_key(self, values) -> tuple | None:
        key = tuple(values.get(name) for name in self.identity_fields)
        if any(part is None for part in key):
            return None
        return tuple(str(part) for part in key)

    def find_existing(self, schema, values, ctx):
        if self.identity_key(values) is None:
            return None
        return ctx.store(schema.name).find_by_composite_key(
            {name: values[name] for name in self.identity_fields}
        )

    def upsert(self, schema, values, supplied_id, ctx):
        existing = self.find_existing(schema, values, ctx)
        if existing is None and supplied_id is not None:
            existing = ctx.store(schema.name).find_by_primary_key(supplied_id)
        return self._write(schema, existing, values, supplied_id, ctx)

    def cleanup(self, schema, uploaded_keys: set, ctx) -> int:
        """Delete unreferenced records whose key was not in ``uploaded_keys``."""
        store = ctx.store(schema.name)
        references = [
            (table, field)
            for table, field in ctx.registry.referencing(schema.name)
            if ctx.stores.get(table) is not None
        ]
        deleted = 0
        for record in store.list_all():
            if self.identity_key(record) in uploaded_keys:
                continue
            try:
                in_use = sum(ctx.stores.get(table).count({field: record["id"]}) for table, field in references)
                if in_use:
                    logger.debug("Keeping %s %s: %d references", schema.name, record["id"], in_use)
                    continue
                store.delete(record["id"])
                deleted += 1
            except (SQLAlchemyError, NotFoundError) as exc:
                logger.warning("Cleanup of %s %s failed: %s", schema.name, record["id"], exc)
        if deleted:
            logger.info("Cleanup removed %d stale %s records", deleted, schema.name)
        return deleted


class EnsureDependentPolicy(UpsertPolicy):
    """Identity is the supplied id, or ``natural_key`` when one is given."""
    kind = "ensure_dependent"

    def __init__(self, natural_key=None):
        self.natural_key = natural_key
        self.identity_fields = (natural_key,) if natural_key else ()

    def find_existing(self, schema, values, ctx):
        if not self.natural_key or values.get(self.natural_key) is None:
            return None
        return ctx.store(schema.name).find_by_unique_field(self.natural_key, values[self.natural_key])

    def upsert(self, schema, values, supplied_id, ctx):
        values = dict(values)
        # Parents first: the natural key may itself be a dangling reference
        self.resolve_parents(schema, values, ctx, creating=False)
        existing = self.find_existing(schema, values, ctx)
        if existing is None and supplied_id is not None:
            existing = ctx.store(schema.name).find_by_primary_key(supplied_id)
        return self._write(schema, existing, values, supplied_id, ctx)


def _seed_email(prefix):
    def _make():
        return f"seed-{prefix}-{uuid.uuid4().hex[:12]}@example.com"
    return _make


DEFAULT_POLICIES = {
    "users": NaturalKeyPolicy("email", stub_key=_seed_email("user"), stub_defaults={"firstName": "Seed"}),
    "customers": NaturalKeyPolicy(
        "primaryEmail", stub_key=_seed_email("customer"), stub_defaults={"primaryName": "Seed Customer"},
    ),
    "workflow_phases": NaturalKeyPolicy("phaseType", case_insensitive=False),
    "role_assignments": NaturalKeyPolicy("roleType", case_insensitive=False),
    "projects": SurrogateKeyPolicy("projectNumber"),
    "project_team_members": CompositeKeyPolicy("projectId", "userId"),
    "workflow_sections": CompositeKeyPolicy("phaseId", "sectionNumber", cleanup=True),
    "workflow_line_items": CompositeKeyPolicy("sectionId", "itemLetter", cleanup=True),
    "project_workflow_trackers": EnsureDependentPolicy(natural_key="projectId"),
    "completed_workflow_items": EnsureDependentPolicy(),
    "workflow_alerts": EnsureDependentPolicy(),
    "project_messages": EnsureDependentPolicy(),
    "tasks": AppendOnlyPolicy(),
    "notifications": AppendOnlyPolicy(),
    "calendar_events": AppendOnlyPolicy(),
    "contacts": AppendOnlyPolicy(),
}
