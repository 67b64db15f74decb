"""gtfs_etl.schema

Declarative GTFS table schema.

Responsibilities:
  - Table: immutable descriptor (ordered fields, key/order fields, flags)
  - SQL generation for one feed namespace (create, insert, copy, index)
  - Header -> Field mapping for an input file, keeping unknown columns
  - build_registry(): every GTFS table, built once, in dependency order

The registry is an ordinary value passed to the loader and exporter, so a
reduced registry can stand in for the full schema in tests.

Usage:
    from gtfs_etl.schema import build_registry

    registry = build_registry()
    stops = registry.get("stops")
    stops.key_field_name        # 'stop_id'
    [f.name for f in stops.required_fields()]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, Protocol, Sequence

import psycopg
from psycopg import sql

from gtfs_etl.conditions import (
    AgencyHasMultipleRowsCheck,
    ConditionalRequirement,
    FieldInRangeCheck,
    FieldIsEmptyCheck,
    FieldNotEmptyAndMatchesValueCheck,
    ForeignRefExistsCheck,
    ReferenceFieldShouldBeProvidedCheck,
)
from gtfs_etl.errors import ErrorType, GTFSError
from gtfs_etl.fields import (
    BooleanField,
    ColorField,
    CurrencyField,
    DateField,
    DateListField,
    DoubleField,
    Field,
    IntegerField,
    LanguageField,
    Requirement,
    ShortField,
    StringField,
    StringListField,
    TimeField,
    URLField,
)
from gtfs_etl.normalize import sanitize_identifier

log = logging.getLogger(__name__)

REQUIRED = Requirement.REQUIRED
OPTIONAL = Requirement.OPTIONAL
EXTENSION = Requirement.EXTENSION
EDITOR = Requirement.EDITOR
UNKNOWN = Requirement.UNKNOWN

# Small tables that are never worth indexing.
UNINDEXED_TABLES = frozenset({"agency", "feed_info"})

INFINITY = float("inf")


class ErrorSink(Protocol):
    def store_error(self, error: GTFSError) -> int: ...


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Table:
    name: str
    entity_type: str
    requirement: Requirement
    fields: tuple[Field, ...]
    parent_table: Table | None = None
    cascade_delete_restricted: bool = False
    has_unique_key_field: bool = True
    compound_key: bool = False
    use_primary_key: bool = False

    def __repr__(self) -> str:
        return f"Table({self.name!r})"

    # -- builders ----------------------------------------------------------

    def restrict_delete(self) -> Table:
        return replace(self, cascade_delete_restricted=True)

    def key_field_is_not_unique(self) -> Table:
        return replace(self, has_unique_key_field=False)

    def with_compound_key(self) -> Table:
        return replace(self, compound_key=True)

    def add_primary_key(self) -> Table:
        return replace(self, use_primary_key=True)

    def with_parent_table(self, parent: Table) -> Table:
        return replace(self, parent_table=parent)

    # -- descriptors -------------------------------------------------------

    @property
    def file_name(self) -> str:
        return f"{self.name}.txt"

    @property
    def is_required(self) -> bool:
        return self.requirement is REQUIRED

    @property
    def is_specification_table(self) -> bool:
        return self.requirement in (REQUIRED, OPTIONAL)

    @property
    def key_field_name(self) -> str:
        return self.fields[0].name

    @property
    def order_field_name(self) -> str | None:
        """Second field, when it is a sequence or part of a compound key."""
        if len(self.fields) < 2:
            return None
        name = self.fields[1].name
        if "_sequence" in name or self.compound_key:
            return name
        return None

    @property
    def index_fields(self) -> tuple[str, ...]:
        order = self.order_field_name
        return (self.key_field_name,) if order is None else (self.key_field_name, order)

    def required_fields(self) -> list[Field]:
        return [f for f in self.fields if f.requirement is REQUIRED]

    def specification_fields(self) -> list[Field]:
        return [f for f in self.fields if f.requirement in (REQUIRED, OPTIONAL)]

    def editor_fields(self) -> list[Field]:
        return [f for f in self.fields if f.requirement in (REQUIRED, OPTIONAL, EDITOR)]

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def conditional_requirements(self) -> list[tuple[Field, tuple[ConditionalRequirement, ...]]]:
        return [(f, f.conditions) for f in self.fields if f.is_conditionally_required]

    @property
    def has_conditional_requirements(self) -> bool:
        return any(f.is_conditionally_required for f in self.fields)

    # -- header mapping ----------------------------------------------------

    def field_for_name(self, name: str) -> Field:
        """Return the declared field, or an opaque text field for unknown columns."""
        for f in self.fields:
            if f.name == name:
                return f
        log.warning("Unrecognized header %s in %s. Treating it as a proprietary string field.", name, self.file_name)
        return StringField(name, UNKNOWN)

    def fields_from_headers(self, headers: Sequence[str], errors: ErrorSink | None = None) -> list[Field | None]:
        """Map a file's header row to Fields, position for position.

        Duplicate headers and a header named 'id' (reserved for the line
        number column) map to None: they still count towards the expected
        column count but are not converted or stored.
        """
        fields: list[Field | None] = []
        seen: set[str] = set()
        for raw_header in headers:
            header = raw_header.strip()
            clean = sanitize_identifier(header)
            if clean != header:
                log.warning("SQL identifier '%s' was sanitized to '%s'", header, clean)
                _store(errors, GTFSError.for_feed(ErrorType.COLUMN_NAME_UNSAFE, header))
            if not clean or clean in seen or clean == "id":
                _store(errors, GTFSError.for_table(self, ErrorType.DUPLICATE_HEADER).with_bad_value(clean))
                fields.append(None)
                continue
            seen.add(clean)
            f = self.field_for_name(clean)
            if f.requirement is UNKNOWN:
                _store(errors, GTFSError.for_table(self, ErrorType.UNRECOGNIZED_COLUMN).with_bad_value(clean))
            fields.append(f)
        return fields

    def missing_required_fields(self, present: Iterable[Field | None]) -> list[Field]:
        names = {f.name for f in present if f is not None}
        return [f for f in self.required_fields() if f.name not in names]

    # -- SQL ---------------------------------------------------------------

    def qualified_name(self, namespace: str) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(namespace), sql.Identifier(self.name))

    def create_sql_table(self, conn: psycopg.Connection, namespace: str, fields: Sequence[Field]) -> None:
        """(Re)create this table in *namespace* with columns in the given order."""
        id_declaration = sql.SQL("id bigint PRIMARY KEY" if self.use_primary_key else "id bigint NOT NULL")
        declarations = [id_declaration] + [f.sql_declaration() for f in fields]
        conn.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(self.qualified_name(namespace)))
        create = sql.SQL("CREATE TABLE {} ({})").format(
            self.qualified_name(namespace), sql.SQL(", ").join(declarations)
        )
        log.info("Creating table %s.%s with %d columns", namespace, self.name, len(fields))
        conn.execute(create)

    def column_list(self, fields: Sequence[Field]) -> sql.Composed:
        return sql.SQL(", ").join(
            [sql.Identifier("id")] + [sql.Identifier(f.name) for f in fields]
        )

    def insert_sql(self, namespace: str, fields: Sequence[Field]) -> sql.Composed:
        placeholders = sql.SQL(", ").join([sql.Placeholder()] * (len(fields) + 1))
        return sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            self.qualified_name(namespace), self.column_list(fields), placeholders
        )

    def copy_sql(self, namespace: str, fields: Sequence[Field]) -> sql.Composed:
        return sql.SQL("COPY {} ({}) FROM STDIN").format(
            self.qualified_name(namespace), self.column_list(fields)
        )

    def create_indexes(self, conn: psycopg.Connection, namespace: str) -> None:
        if self.name in UNINDEXED_TABLES:
            log.info("Skipping indexes for %s table", self.name)
            return
        log.info("Indexing %s...", self.name)
        conn.execute(
            sql.SQL("CREATE INDEX {} ON {} ({})").format(
                sql.Identifier(f"{namespace}_{self.name}_idx"),
                self.qualified_name(namespace),
                sql.SQL(", ").join(sql.Identifier(n) for n in self.index_fields),
            )
        )
        for f in self.fields:
            if f.index_this_column:
                conn.execute(
                    sql.SQL("CREATE INDEX {} ON {} ({})").format(
                        sql.Identifier(f"{namespace}_{self.name}_{f.name}_idx"),
                        self.qualified_name(namespace),
                        sql.Identifier(f.name),
                    )
                )


def _store(errors: ErrorSink | None, error: GTFSError) -> None:
    if errors is not None:
        errors.store_error(error)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class SchemaRegistry:
    """Immutable, ordered collection of Tables.

    `tables` holds every known table; `load_order` is the subset read from
    feed archives, referenced tables first.
    """

    def __init__(self, tables: Iterable[Table], load_order: Iterable[str] | None = None) -> None:
        self._tables = {t.name: t for t in tables}
        names = tuple(load_order) if load_order is not None else tuple(self._tables)
        unknown = [n for n in names if n not in self._tables]
        if unknown:
            raise KeyError(f"load order names unknown tables: {unknown}")
        self._load_order = tuple(self._tables[n] for n in names)

    @property
    def tables(self) -> tuple[Table, ...]:
        return tuple(self._tables.values())

    @property
    def load_order(self) -> tuple[Table, ...]:
        return self._load_order

    def get(self, name: str) -> Table:
        return self._tables[name]

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __iter__(self) -> Iterator[Table]:
        return iter(self._load_order)

    def __len__(self) -> int:
        return len(self._load_order)


LOAD_ORDER = (
    "agency",
    "calendar",
    "calendar_dates",
    "routes",
    "fare_attributes",
    "feed_info",
    "shapes",
    "stops",
    "fare_rules",
    "transfers",
    "trips",
    "frequencies",
    "stop_times",
    "translations",
    "attributions",
    "booking_rules",
)


def build_registry() -> SchemaRegistry:
    """Build every GTFS table definition."""
    agency = Table("agency", "Agency", REQUIRED, (
        StringField("agency_id", OPTIONAL).require_conditions(
            # Multi-agency feeds must give every agency an id.
            AgencyHasMultipleRowsCheck(),
        ).with_foreign_references(),
        StringField("agency_name", REQUIRED),
        URLField("agency_url", REQUIRED),
        StringField("agency_timezone", REQUIRED),
        LanguageField("agency_lang", OPTIONAL),
        StringField("agency_phone", OPTIONAL),
        URLField("agency_branding_url", OPTIONAL),
        URLField("agency_fare_url", OPTIONAL),
        StringField("agency_email", OPTIONAL),
    )).restrict_delete().add_primary_key()

    calendar = Table("calendar", "Calendar", OPTIONAL, (
        StringField("service_id", REQUIRED),
        IntegerField("monday", REQUIRED, 0, 1),
        IntegerField("tuesday", REQUIRED, 0, 1),
        IntegerField("wednesday", REQUIRED, 0, 1),
        IntegerField("thursday", REQUIRED, 0, 1),
        IntegerField("friday", REQUIRED, 0, 1),
        IntegerField("saturday", REQUIRED, 0, 1),
        IntegerField("sunday", REQUIRED, 0, 1),
        DateField("start_date", REQUIRED),
        DateField("end_date", REQUIRED),
        StringField("description", EDITOR),
    )).restrict_delete().add_primary_key()

    schedule_exceptions = Table("schedule_exceptions", "ScheduleException", EDITOR, (
        StringField("name", REQUIRED),
        DateListField("dates", REQUIRED),
        ShortField("exemplar", REQUIRED, 9),
        StringListField("custom_schedule", OPTIONAL).is_reference_to(calendar),
        StringListField("added_service", OPTIONAL).is_reference_to(calendar),
        StringListField("removed_service", OPTIONAL).is_reference_to(calendar),
    )).add_primary_key()

    calendar_dates = Table("calendar_dates", "CalendarDate", OPTIONAL, (
        StringField("service_id", REQUIRED).is_reference_to(calendar),
        DateField("date", REQUIRED),
        IntegerField("exception_type", REQUIRED, 1, 2),
    )).key_field_is_not_unique()

    fare_attributes = Table("fare_attributes", "FareAttribute", OPTIONAL, (
        StringField("fare_id", REQUIRED),
        DoubleField("price", REQUIRED, 0.0, INFINITY, 2),
        CurrencyField("currency_type", REQUIRED),
        ShortField("payment_method", REQUIRED, 1),
        # Empty means unlimited transfers.
        ShortField("transfers", REQUIRED, 2).permit_empty_value(),
        StringField("agency_id", OPTIONAL).require_conditions(
            ReferenceFieldShouldBeProvidedCheck("agency_id"),
        ),
        IntegerField("transfer_duration", OPTIONAL),
    )).add_primary_key()

    # feed_id is deliberately not first: the key field cannot be optional.
    feed_info = Table("feed_info", "FeedInfo", OPTIONAL, (
        StringField("feed_publisher_name", REQUIRED),
        StringField("feed_id", OPTIONAL),
        URLField("feed_publisher_url", REQUIRED),
        LanguageField("feed_lang", REQUIRED),
        DateField("feed_start_date", OPTIONAL),
        DateField("feed_end_date", OPTIONAL),
        StringField("feed_version", OPTIONAL),
        ColorField("default_route_color", EDITOR),
        IntegerField("default_route_type", EDITOR, 0, 1800),
        LanguageField("default_lang", OPTIONAL),
        StringField("feed_contact_email", OPTIONAL),
        URLField("feed_contact_url", OPTIONAL),
    )).key_field_is_not_unique()

    routes = Table("routes", "Route", REQUIRED, (
        StringField("route_id", REQUIRED),
        StringField("agency_id", OPTIONAL).is_reference_to(agency).require_conditions(
            ReferenceFieldShouldBeProvidedCheck("agency_id"),
        ),
        StringField("route_short_name", OPTIONAL),
        StringField("route_long_name", OPTIONAL),
        StringField("route_desc", OPTIONAL),
        # Extended route types run up to 1700-ish.
        IntegerField("route_type", REQUIRED, 0, 1800),
        URLField("route_url", OPTIONAL),
        URLField("route_branding_url", OPTIONAL),
        ColorField("route_color", OPTIONAL),
        ColorField("route_text_color", OPTIONAL),
        ShortField("publicly_visible", EDITOR, 1),
        ShortField("wheelchair_accessible", EDITOR, 2).permit_empty_value(),
        IntegerField("route_sort_order", OPTIONAL),
        # 0 in progress, 1 pending approval, 2 approved
        ShortField("status", EDITOR, 2),
        ShortField("continuous_pickup", OPTIONAL, 3),
        ShortField("continuous_drop_off", OPTIONAL, 3),
    )).add_primary_key()

    shapes = Table("shapes", "ShapePoint", OPTIONAL, (
        StringField("shape_id", REQUIRED),
        IntegerField("shape_pt_sequence", REQUIRED),
        DoubleField("shape_pt_lat", REQUIRED, -90, 90, 6),
        DoubleField("shape_pt_lon", REQUIRED, -180, 180, 6),
        DoubleField("shape_dist_traveled", OPTIONAL, 0, INFINITY, -1),
        # 0 regular, 1 anchor, 2 stop-projected
        ShortField("point_type", EDITOR, 2),
    ))

    patterns = Table("patterns", "Pattern", EDITOR, (
        StringField("pattern_id", REQUIRED),
        StringField("route_id", REQUIRED).is_reference_to(routes),
        StringField("name", OPTIONAL),
        ShortField("direction_id", EDITOR, 1),
        ShortField("use_frequency", EDITOR, 1),
        StringField("shape_id", EDITOR).is_reference_to(shapes),
    )).add_primary_key()

    stops = Table("stops", "Stop", REQUIRED, (
        StringField("stop_id", REQUIRED),
        StringField("stop_code", OPTIONAL),
        StringField("stop_name", OPTIONAL),
        StringField("stop_desc", OPTIONAL),
        DoubleField("stop_lat", OPTIONAL, -90, 90, 6),
        DoubleField("stop_lon", OPTIONAL, -180, 180, 6),
        StringField("zone_id", OPTIONAL).with_foreign_references(),
        URLField("stop_url", OPTIONAL),
        ShortField("location_type", OPTIONAL, 4).require_conditions(
            # stops, stations and entrances need names and coordinates;
            # entrances, generic nodes and boarding areas need a parent.
            FieldInRangeCheck(0, 2, "stop_name"),
            FieldInRangeCheck(0, 2, "stop_lat"),
            FieldInRangeCheck(0, 2, "stop_lon"),
            FieldInRangeCheck(2, 4, "parent_station"),
        ),
        StringField("parent_station", OPTIONAL),
        StringField("stop_timezone", OPTIONAL),
        ShortField("wheelchair_boarding", OPTIONAL, 2),
        StringField("platform_code", OPTIONAL),
    )).restrict_delete().add_primary_key()

    fare_rules = Table("fare_rules", "FareRule", OPTIONAL, (
        StringField("fare_id", REQUIRED).is_reference_to(fare_attributes),
        StringField("route_id", OPTIONAL).is_reference_to(routes),
        StringField("origin_id", OPTIONAL).require_conditions(
            ForeignRefExistsCheck("zone_id", "fare_rules"),
        ),
        StringField("destination_id", OPTIONAL).require_conditions(
            ForeignRefExistsCheck("zone_id", "fare_rules"),
        ),
        StringField("contains_id", OPTIONAL).require_conditions(
            ForeignRefExistsCheck("zone_id", "fare_rules"),
        ),
    )).with_parent_table(fare_attributes).add_primary_key().key_field_is_not_unique()

    pattern_stops = Table("pattern_stops", "PatternStop", EDITOR, (
        StringField("pattern_id", REQUIRED).is_reference_to(patterns),
        IntegerField("stop_sequence", REQUIRED),
        StringField("stop_id", REQUIRED).is_reference_to(stops),
        StringField("stop_headsign", EDITOR),
        IntegerField("default_travel_time", EDITOR),
        IntegerField("default_dwell_time", EDITOR),
        IntegerField("drop_off_type", EDITOR, 0, 2),
        IntegerField("pickup_type", EDITOR, 0, 2),
        DoubleField("shape_dist_traveled", EDITOR, 0, INFINITY, -1),
        ShortField("timepoint", EDITOR, 1),
        ShortField("continuous_pickup", OPTIONAL, 3),
        ShortField("continuous_drop_off", OPTIONAL, 3),
        StringField("pickup_booking_rule_id", OPTIONAL),
        StringField("drop_off_booking_rule_id", OPTIONAL),
    )).with_parent_table(patterns)

    transfers = Table("transfers", "Transfer", OPTIONAL, (
        StringField("from_stop_id", REQUIRED).is_reference_to(stops),
        StringField("to_stop_id", REQUIRED).is_reference_to(stops),
        ShortField("transfer_type", REQUIRED, 3),
        IntegerField("min_transfer_time", OPTIONAL),
    )).add_primary_key().key_field_is_not_unique().with_compound_key()

    trips = Table("trips", "Trip", REQUIRED, (
        StringField("trip_id", REQUIRED),
        StringField("route_id", REQUIRED).is_reference_to(routes).index_column(),
        StringField("service_id", REQUIRED).is_reference_to(calendar),
        StringField("trip_headsign", OPTIONAL),
        StringField("trip_short_name", OPTIONAL),
        ShortField("direction_id", OPTIONAL, 1),
        StringField("block_id", OPTIONAL),
        StringField("shape_id", OPTIONAL).is_reference_to(shapes),
        ShortField("wheelchair_accessible", OPTIONAL, 2),
        ShortField("bikes_allowed", OPTIONAL, 2),
        StringField("pattern_id", EDITOR).is_reference_to(patterns),
    )).add_primary_key()

    stop_times = Table("stop_times", "StopTime", REQUIRED, (
        StringField("trip_id", REQUIRED).is_reference_to(trips),
        IntegerField("stop_sequence", REQUIRED),
        StringField("stop_id", REQUIRED).is_reference_to(stops),
        TimeField("arrival_time", OPTIONAL),
        TimeField("departure_time", OPTIONAL),
        StringField("stop_headsign", OPTIONAL),
        ShortField("pickup_type", OPTIONAL, 3),
        ShortField("drop_off_type", OPTIONAL, 3),
        ShortField("continuous_pickup", OPTIONAL, 3),
        ShortField("continuous_drop_off", OPTIONAL, 3),
        DoubleField("shape_dist_traveled", OPTIONAL, 0, INFINITY, -1),
        ShortField("timepoint", OPTIONAL, 1),
        IntegerField("fare_units_traveled", EXTENSION),
        StringField("pickup_booking_rule_id", OPTIONAL),
        StringField("drop_off_booking_rule_id", OPTIONAL),
        TimeField("start_pickup_drop_off_window", OPTIONAL),
        TimeField("end_pickup_drop_off_window", OPTIONAL),
        DoubleField("mean_duration_factor", OPTIONAL, 0, INFINITY, 2),
        DoubleField("mean_duration_offset", OPTIONAL, 0, INFINITY, 2),
        DoubleField("safe_duration_factor", OPTIONAL, 0, INFINITY, 2),
        DoubleField("safe_duration_offset", OPTIONAL, 0, INFINITY, 2),
    )).with_parent_table(trips)

    frequencies = Table("frequencies", "Frequency", OPTIONAL, (
        StringField("trip_id", REQUIRED).is_reference_to(trips),
        TimeField("start_time", REQUIRED),
        TimeField("end_time", REQUIRED),
        # Six hours; anything longer is usually milliseconds exported by mistake.
        IntegerField("headway_secs", REQUIRED, 20, 60 * 60 * 6),
        IntegerField("exact_times", OPTIONAL, 0, 1),
    )).with_parent_table(trips).key_field_is_not_unique()

    translations = Table("translations", "Translation", OPTIONAL, (
        StringField("table_name", REQUIRED),
        StringField("field_name", REQUIRED),
        LanguageField("language", REQUIRED),
        StringField("translation", REQUIRED),
        StringField("record_id", OPTIONAL).require_conditions(
            FieldIsEmptyCheck("field_value"),
        ),
        StringField("record_sub_id", OPTIONAL).require_conditions(
            FieldNotEmptyAndMatchesValueCheck("table_name", "stop_times"),
        ),
        StringField("field_value", OPTIONAL).require_conditions(
            FieldIsEmptyCheck("record_id"),
        ),
    )).key_field_is_not_unique()

    attributions = Table("attributions", "Attribution", OPTIONAL, (
        StringField("attribution_id", OPTIONAL),
        StringField("agency_id", OPTIONAL).is_reference_to(agency),
        StringField("route_id", OPTIONAL).is_reference_to(routes),
        StringField("trip_id", OPTIONAL).is_reference_to(trips),
        StringField("organization_name", REQUIRED),
        ShortField("is_producer", OPTIONAL, 1),
        ShortField("is_operator", OPTIONAL, 1),
        ShortField("is_authority", OPTIONAL, 1),
        URLField("attribution_url", OPTIONAL),
        StringField("attribution_email", OPTIONAL),
        StringField("attribution_phone", OPTIONAL),
    ))

    booking_rules = Table("booking_rules", "BookingRule", OPTIONAL, (
        StringField("booking_rule_id", REQUIRED),
        ShortField("booking_type", OPTIONAL, 2),
        IntegerField("prior_notice_duration_min", OPTIONAL),
        IntegerField("prior_notice_duration_max", OPTIONAL),
        IntegerField("prior_notice_last_day", OPTIONAL),
        StringField("prior_notice_last_time", OPTIONAL),
        IntegerField("prior_notice_start_day", OPTIONAL),
        StringField("prior_notice_start_time", OPTIONAL),
        StringField("prior_notice_service_id", OPTIONAL).is_reference_to(calendar),
        StringField("message", OPTIONAL),
        StringField("pickup_message", OPTIONAL),
        StringField("drop_off_message", OPTIONAL),
        StringField("phone_number", OPTIONAL),
        URLField("info_url", OPTIONAL),
        URLField("booking_url", OPTIONAL),
    ))

    return SchemaRegistry(
        [
            agency,
            calendar,
            schedule_exceptions,
            calendar_dates,
            fare_attributes,
            feed_info,
            routes,
            patterns,
            shapes,
            stops,
            fare_rules,
            pattern_stops,
            transfers,
            trips,
            stop_times,
            frequencies,
            translations,
            attributions,
            booking_rules,
        ],
        load_order=LOAD_ORDER,
    )
