"""gtfs_etl.references

Cross-table identity for one feed load.

The tracker lives exactly as long as one load. Tables are processed in
dependency order, so by the time trips.txt is read every route_id and
service_id has already been recorded and a reference can be checked with a
set lookup.

Identity strings:
  - "<key_field>:<value>"                      entity ids (route_id:R1)
  - "<order_field>:<key>:<value>"              sequenced rows (stop_sequence:T1:3)
  - "<table>:<key_field>:<value>"              ids in proprietary tables
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Mapping

from gtfs_etl.conditions import LineContext
from gtfs_etl.errors import ErrorType, GTFSError
from gtfs_etl.fields import Field, Requirement
from gtfs_etl.normalize import StringInterner
from gtfs_etl.schema import Table

log = logging.getLogger(__name__)


class ReferenceTracker:
    """Accumulates seen ids and reports duplicates and dangling references."""

    def __init__(self) -> None:
        self.transit_ids: set[str] = set()
        self.transit_ids_with_sequence: set[str] = set()
        self.unique_values_for_fields: defaultdict[str, set[str]] = defaultdict(set)
        self._interner = StringInterner()

    def _id(self, *parts: Any) -> str:
        return self._interner.intern(":".join(str(p) for p in parts))

    def _reference_id(self, table: Table, value: str) -> str:
        """Identity a row of *table* registered for key *value*."""
        if table.requirement is Requirement.PROPRIETARY:
            return self._id(table.name, table.key_field_name, value)
        return self._id(table.key_field_name, value)

    # -----------------------------------------------------------------------
    # Per-cell check
    # -----------------------------------------------------------------------

    def check_references_and_uniqueness(
        self,
        key_value: str,
        line_number: int,
        field: Field,
        value: str,
        table: Table,
        key_field: str | None = None,
        order_field: str | None = None,
    ) -> list[GTFSError]:
        """Record *value* and return any DUPLICATE_ID / REFERENTIAL_INTEGRITY errors.

        Args:
            key_value:   the row's value for the table's key field.
            line_number: 1-based file line of the row.
            field:       column being checked.
            value:       trimmed raw cell text.
            table:       table the row belongs to.
            key_field / order_field: default to the table's own.

        Returns:
            Errors found for this cell (possibly empty).
        """
        if key_field is None:
            key_field = table.key_field_name
        if order_field is None:
            order_field = table.order_field_name

        field_name = field.name
        is_key_field = field_name == key_field
        is_order_field = field_name == order_field

        if order_field is not None:
            unique_key_field = order_field
        elif table.has_unique_key_field:
            unique_key_field = key_field
        else:
            unique_key_field = None

        # Keep values other tables (or conditions) may need to look up.
        if (is_key_field and field_name == unique_key_field) or field.has_foreign_references:
            self.unique_values_for_fields[field_name].add(self._interner.intern(value))

        if field.requirement is not Requirement.REQUIRED and value == "":
            return []

        errors: list[GTFSError] = []

        if field.is_foreign_reference:
            # The value must be a key of at least one referenced table.
            if not any(self._reference_id(ref, value) in self.transit_ids for ref in field.reference_tables):
                error = GTFSError.for_line(
                    table, line_number, ErrorType.REFERENTIAL_INTEGRITY, self._id(field_name, value)
                ).with_entity_id(key_value)
                if is_order_field:
                    error.with_sequence(value)
                errors.append(error)

        if field_name == unique_key_field:
            if is_order_field:
                unique_id = self._id(order_field, key_value, value)
                seen = self.transit_ids_with_sequence
            else:
                if table.requirement is Requirement.PROPRIETARY:
                    unique_id = self._id(table.name, key_field, value)
                else:
                    unique_id = self._id(key_field, value)
                seen = self.transit_ids
            if unique_id in seen:
                error = GTFSError.for_line(
                    table, line_number, ErrorType.DUPLICATE_ID, unique_id
                ).with_entity_id(key_value)
                if is_order_field:
                    error.with_sequence(value)
                errors.append(error)
            else:
                seen.add(unique_id)
        elif is_key_field and (not field.is_foreign_reference or table.name == "calendar_dates"):
            # Non-unique keys (feed_info, fare_rules...) and calendar_dates
            # service_ids still define ids that other tables may reference.
            self.transit_ids.add(self._id(key_field, value))

        return errors

    # -----------------------------------------------------------------------
    # Per-row check
    # -----------------------------------------------------------------------

    def check_conditionally_required_fields(
        self,
        table: Table,
        line_number: int,
        values: Mapping[str, Any],
    ) -> list[GTFSError]:
        """Run every conditional requirement of *table* against one converted row."""
        if not table.has_conditional_requirements:
            return []
        context = LineContext(table=table, line_number=line_number, values=values)
        errors: list[GTFSError] = []
        for reference_field, conditions in table.conditional_requirements():
            for condition in conditions:
                errors.extend(condition.check(context, reference_field, self.unique_values_for_fields))
        return errors

    # -----------------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------------

    def has_id(self, key_field: str, value: str) -> bool:
        return f"{key_field}:{value}" in self.transit_ids

    def __len__(self) -> int:
        return len(self.transit_ids) + len(self.transit_ids_with_sequence)
