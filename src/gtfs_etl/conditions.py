"""gtfs_etl.conditions

Conditional requirements: a field that the GTFS reference lists as
optional, but which becomes required depending on another value in the same
row (or on what has been seen earlier in the feed).

A condition is attached to its *reference field* in the schema and is
evaluated once per row, after every cell has been converted. Empty cells
appear as None in the LineContext.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping

from gtfs_etl.errors import ErrorType, GTFSError

if TYPE_CHECKING:
    from gtfs_etl.fields import Field
    from gtfs_etl.schema import Table

FIRST_ROW = 2
SECOND_ROW = 3


# ---------------------------------------------------------------------------
# LineContext
# ---------------------------------------------------------------------------

@dataclass
class LineContext:
    """Converted values of one row, keyed by field name."""

    table: Table
    line_number: int
    values: Mapping[str, Any]

    def value_for(self, field_name: str) -> Any:
        """Return the converted value, or None if empty or not in the file."""
        return self.values.get(field_name)

    def is_empty(self, field_name: str) -> bool:
        return _is_empty(self.value_for(field_name))

    @property
    def entity_id(self) -> str | None:
        value = self.value_for(self.table.key_field_name)
        return None if _is_empty(value) else str(value)

    def error(self, error_type: ErrorType, bad_value: str | None) -> GTFSError:
        return GTFSError.for_line(self.table, self.line_number, error_type, bad_value).with_entity_id(
            self.entity_id
        )


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------

class ConditionalRequirement:
    """Base class. dependent_field_name is the other field the check inspects."""

    dependent_field_name: str

    def check(
        self,
        line_context: LineContext,
        reference_field: Field,
        unique_values_for_fields: Mapping[str, set[str]],
    ) -> list[GTFSError]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.dependent_field_name!r})"


class AgencyHasMultipleRowsCheck(ConditionalRequirement):
    """agency_id must be present on every row once a feed has two agencies.

    Evaluated while agency.txt itself is loading. When the second row is
    reached, an empty agency_id seen so far is reported against the first
    row, or against the second row when that one is the empty one; from the
    third row on, each row lacking agency_id is reported.
    """

    def __init__(self) -> None:
        self.dependent_field_name = "agency_id"

    def check(self, line_context, reference_field, unique_values_for_fields):
        agency_ids = unique_values_for_fields.get(self.dependent_field_name, set())
        current_missing = line_context.is_empty(self.dependent_field_name)
        first_or_second_missing = line_context.line_number == SECOND_ROW and "" in agency_ids
        if not (first_or_second_missing or (line_context.line_number > SECOND_ROW and current_missing)):
            return []
        if first_or_second_missing:
            line_number = SECOND_ROW if current_missing else FIRST_ROW
        else:
            line_number = line_context.line_number
        return [
            GTFSError.for_line(
                line_context.table,
                line_number,
                ErrorType.AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS,
                self.dependent_field_name,
            )
        ]


class ReferenceFieldShouldBeProvidedCheck(ConditionalRequirement):
    """The reference field is required when the feed has more than one distinct
    value of the dependent field (e.g. routes.agency_id on multi-agency feeds).
    """

    def __init__(self, dependent_field_name: str) -> None:
        self.dependent_field_name = dependent_field_name

    def check(self, line_context, reference_field, unique_values_for_fields):
        distinct = unique_values_for_fields.get(self.dependent_field_name, set())
        if len(distinct) > 1 and line_context.is_empty(reference_field.name):
            return [line_context.error(ErrorType.AGENCY_ID_REQUIRED_FOR_MULTI_AGENCY_FEEDS, None)]
        return []


class FieldInRangeCheck(ConditionalRequirement):
    """The dependent field is required when the reference value is within [min, max]."""

    def __init__(self, min_reference_value: int, max_reference_value: int, dependent_field_name: str) -> None:
        self.min_reference_value = min_reference_value
        self.max_reference_value = max_reference_value
        self.dependent_field_name = dependent_field_name

    def check(self, line_context, reference_field, unique_values_for_fields):
        reference_value = line_context.value_for(reference_field.name)
        if not self._in_range(reference_value):
            return []
        if not line_context.is_empty(self.dependent_field_name):
            return []
        message = (
            f"{self.dependent_field_name} is required when {reference_field.name} value is between "
            f"{self.min_reference_value} and {self.max_reference_value}."
        )
        return [line_context.error(ErrorType.CONDITIONALLY_REQUIRED, message)]

    def _in_range(self, value: Any) -> bool:
        if _is_empty(value):
            return False
        try:
            number = int(value)
        except (TypeError, ValueError):
            return False
        return self.min_reference_value <= number <= self.max_reference_value


class FieldIsEmptyCheck(ConditionalRequirement):
    """The reference field is required when the dependent field is empty."""

    def __init__(self, dependent_field_name: str) -> None:
        self.dependent_field_name = dependent_field_name

    def check(self, line_context, reference_field, unique_values_for_fields):
        if line_context.is_empty(self.dependent_field_name) and line_context.is_empty(reference_field.name):
            message = f"{reference_field.name} is required when {self.dependent_field_name} is empty."
            return [line_context.error(ErrorType.CONDITIONALLY_REQUIRED, message)]
        return []


class FieldNotEmptyAndMatchesValueCheck(ConditionalRequirement):
    """The reference field is required when the dependent field equals a given value."""

    def __init__(self, dependent_field_name: str, required_dependent_value: str) -> None:
        self.dependent_field_name = dependent_field_name
        self.required_dependent_value = required_dependent_value

    def check(self, line_context, reference_field, unique_values_for_fields):
        dependent_value = line_context.value_for(self.dependent_field_name)
        if dependent_value == self.required_dependent_value and line_context.is_empty(reference_field.name):
            message = (
                f"{reference_field.name} is required when {self.dependent_field_name} "
                f"is {self.required_dependent_value}."
            )
            return [line_context.error(ErrorType.CONDITIONALLY_REQUIRED, message)]
        return []


class ForeignRefExistsCheck(ConditionalRequirement):
    """The reference value must be one of the values seen for the dependent field.

    Used for ids that are not a table key, e.g. fare_rules.origin_id must match
    some stops.zone_id.
    """

    def __init__(self, dependent_field_name: str, reference_table_name: str) -> None:
        self.dependent_field_name = dependent_field_name
        self.reference_table_name = reference_table_name

    def check(self, line_context, reference_field, unique_values_for_fields):
        if line_context.table.name != self.reference_table_name:
            return []
        value = line_context.value_for(reference_field.name)
        if _is_empty(value):
            return []
        if value in unique_values_for_fields.get(self.dependent_field_name, set()):
            return []
        bad_value = ":".join((reference_field.name, self.dependent_field_name, str(value)))
        return [line_context.error(ErrorType.REFERENTIAL_INTEGRITY, bad_value)]
