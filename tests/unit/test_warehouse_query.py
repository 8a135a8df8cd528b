"""
Unit tests for warehouse query building and filters
"""

import pytest
from datetime import date
from pydantic import ValidationError as PydanticValidationError
from core.exceptions import ConfigurationError, RetryExhaustedError, WarehouseQueryError
from ingestion.entities import FACILITIES, WAREHOUSE_ENTITIES, get_entity
from ingestion.extractors.warehouse_client import WarehouseClient, build_query
from schemas.filters import (
    GAEventFilter,
    LeaseFilter,
    QueryParameter,
    UnitFilter,
)


def _selected_columns(sql: str):
    select_line = sql.splitlines()[0]
    return [c.strip() for c in select_line[len("SELECT "):].split(",")]


class TestFilters:

    def test_only_set_fields_become_conditions(self):
        clauses, params = LeaseFilter(facility_id="F1", is_active=1).to_query_parts()

        assert clauses == ["facility_id = @facility_id", "is_active = @is_active"]
        assert params == [
            QueryParameter("facility_id", "STRING", "F1"),
            QueryParameter("is_active", "INT64", 1),
        ]

    def test_empty_filter_has_no_conditions(self):
        assert LeaseFilter().to_query_parts() == ([], [])

    def test_dates_are_parsed(self):
        _, params = LeaseFilter(start_date="2024-01-01").to_query_parts()
        assert params == [QueryParameter("start_date", "DATE", date(2024, 1, 1))]

    def test_unknown_fields_rejected(self):
        with pytest.raises(PydanticValidationError):
            UnitFilter(unit_id="U-1", table="units; DROP TABLE units")

    def test_out_of_range_flag_rejected(self):
        with pytest.raises(PydanticValidationError):
            LeaseFilter(is_active=2)

    def test_relative_window(self):
        clauses, params = GAEventFilter(days=7).to_query_parts()

        assert len(clauses) == 1
        assert "@days" in clauses[0]
        assert params == [QueryParameter("days", "INT64", 7)]


class TestBuildQuery:

    def test_explicit_columns_no_wildcard(self):
        sql, params = build_query("authorized_views", get_entity("units"))

        assert "*" not in sql
        assert set(_selected_columns(sql)) == {
            "unit_id", "facility_id", "pg_id", "unit_number", "unit_type",
            "status", "rate_managed", "unit_width", "unit_depth", "unit_height",
        }
        assert "FROM `authorized_views.units`" in sql
        assert "WHERE" not in sql
        assert "ORDER BY" not in sql
        assert params == []

    def test_values_travel_as_parameters(self):
        sql, params = build_query(
            "authorized_views",
            get_entity("leases"),
            LeaseFilter(facility_id="F1'; --", is_active=1),
        )

        assert "F1'" not in sql
        assert "WHERE facility_id = @facility_id\n  AND is_active = @is_active" in sql
        assert sql.endswith("ORDER BY lease_started DESC")
        assert params[0].value == "F1'; --"

    def test_view_names_differ_from_entity_names(self):
        sql, _ = build_query("authorized_views", get_entity("contacts"))
        assert "FROM `authorized_views.contact`" in sql

        sql, _ = build_query("authorized_views", get_entity("pricing_groups"))
        assert "FROM `authorized_views.pricing_group`" in sql

    def test_wrong_filter_type_rejected(self):
        with pytest.raises(ConfigurationError):
            build_query("authorized_views", get_entity("leases"), UnitFilter(unit_id="U-1"))

    def test_entity_without_view_rejected(self):
        with pytest.raises(ConfigurationError):
            build_query("authorized_views", FACILITIES)

    @pytest.mark.parametrize("name", list(WAREHOUSE_ENTITIES))
    def test_every_entity_selects_its_natural_key(self, name):
        entity = WAREHOUSE_ENTITIES[name]
        sql, _ = build_query("authorized_views", entity)

        columns = _selected_columns(sql)
        for key in entity.natural_key:
            assert key in columns
        assert "updated_at" not in columns

    def test_unknown_entity(self):
        with pytest.raises(KeyError):
            get_entity("invoices")


class TestWarehouseClient:

    @pytest.mark.asyncio
    async def test_query_runs_built_sql(self, retry, metrics, unit_rows):
        seen = []

        def runner(sql, params):
            seen.append((sql, list(params)))
            return unit_rows

        client = WarehouseClient(retry=retry, metrics=metrics, query_runner=runner)
        rows = await client.query(get_entity("units"), UnitFilter(facility_id="F1"))

        assert rows == unit_rows
        sql, params = seen[0]
        assert "facility_id = @facility_id" in sql
        assert params == [QueryParameter("facility_id", "STRING", "F1")]
        assert metrics.get_metrics()["api_calls"]["by_operation"]["getUnits"]["success"] == 1

    @pytest.mark.asyncio
    async def test_transient_failures_retried(self, retry, recording_sleep, metrics, unit_rows):
        attempts = []

        def runner(sql, params):
            attempts.append(1)
            if len(attempts) < 3:
                raise WarehouseQueryError("backend error")
            return unit_rows

        client = WarehouseClient(retry=retry, metrics=metrics, query_runner=runner)
        rows = await client.query(get_entity("units"))

        assert len(rows) == 3
        assert recording_sleep.delays == [1.0, 2.0]
        api = metrics.get_metrics()["api_calls"]
        assert (api["success"], api["failure"]) == (1, 2)

    @pytest.mark.asyncio
    async def test_exhaustion_names_operation(self, retry):
        def runner(sql, params):
            raise WarehouseQueryError("backend error")

        client = WarehouseClient(retry=retry, query_runner=runner)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await client.query(get_entity("leases"))

        assert exc_info.value.operation == "Warehouse getLeases"

    @pytest.mark.asyncio
    async def test_missing_project_is_configuration_error(self, retry):
        client = WarehouseClient(project=None, retry=retry)

        with pytest.raises(ConfigurationError):
            await client.query(get_entity("units"))

    @pytest.mark.asyncio
    async def test_list_views(self, retry):
        client = WarehouseClient(
            retry=retry,
            query_runner=lambda sql, params: [{"table_name": "units"}, {"table_name": "leases"}],
        )

        assert await client.list_views() == ["units", "leases"]
