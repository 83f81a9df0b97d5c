"""Tests for filter parsing and statement building."""

import pytest

from sporetag.services.query_builder import (
    GeoFilters,
    MalformedQueryParameter,
    build,
    parse_filters,
)


def _sql(statement) -> str:
    return str(statement.compile())


def _params(statement) -> list:
    return sorted(statement.compile().params.values())


class TestParseFilters:
    """Query-string parsing."""

    def test_no_params_means_no_filters(self) -> None:
        assert parse_filters({}) == GeoFilters()

    def test_blank_values_are_absent(self) -> None:
        assert parse_filters({"minLat": "", "limit": "  ", "cursor": None}) == GeoFilters()

    def test_all_params_parsed(self) -> None:
        filters = parse_filters(
            {
                "minLat": "-34.5",
                "maxLat": "-33",
                "minLng": "18",
                "maxLng": "1.9e1",
                "cursor": "12",
                "limit": "50",
            }
        )
        assert filters == GeoFilters(
            min_lat=-34.5,
            max_lat=-33.0,
            min_lng=18.0,
            max_lng=19.0,
            cursor=12,
            limit=50,
        )

    def test_inverted_box_is_passed_through(self) -> None:
        filters = parse_filters({"minLat": "10", "maxLat": "-10"})
        assert filters.min_lat == 10.0
        assert filters.max_lat == -10.0

    @pytest.mark.parametrize("name", ["minLat", "maxLat", "minLng", "maxLng"])
    @pytest.mark.parametrize("raw", ["abc", "12abc", "nan", "inf", "-Infinity"])
    def test_bad_coordinates_rejected(self, name, raw) -> None:
        with pytest.raises(MalformedQueryParameter) as excinfo:
            parse_filters({name: raw})
        assert excinfo.value.name == name
        assert name in str(excinfo.value)

    @pytest.mark.parametrize("raw", ["abc", "1.5", "1e3"])
    def test_bad_cursor_rejected(self, raw) -> None:
        with pytest.raises(MalformedQueryParameter):
            parse_filters({"cursor": raw})

    @pytest.mark.parametrize("raw", ["0", "-1", "ten", "2.5"])
    def test_bad_limit_rejected(self, raw) -> None:
        with pytest.raises(MalformedQueryParameter) as excinfo:
            parse_filters({"limit": raw})
        assert "positive integer" in str(excinfo.value)

    @pytest.mark.parametrize("name", ["cursor", "limit"])
    @pytest.mark.parametrize("raw", ["9" * 30, str(2**63), str(-(2**63) - 1)])
    def test_out_of_range_integers_rejected(self, name, raw) -> None:
        with pytest.raises(MalformedQueryParameter) as excinfo:
            parse_filters({name: raw})
        assert excinfo.value.name == name
        assert "64-bit" in str(excinfo.value)

    def test_largest_sql_integer_accepted(self) -> None:
        filters = parse_filters({"cursor": str(2**63 - 1), "limit": str(2**63 - 1)})
        assert filters.cursor == 2**63 - 1
        assert filters.limit == 2**63 - 1

    @pytest.mark.parametrize(
        ("name", "raw"),
        [("minLat", "1_0"), ("maxLng", "-1_0.5"), ("cursor", "1_0"), ("limit", "1_0")],
    )
    def test_underscore_digit_groups_rejected(self, name, raw) -> None:
        with pytest.raises(MalformedQueryParameter):
            parse_filters({name: raw})

    def test_malformed_parameter_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_filters({"minLng": "west"})


class TestBuild:
    """Statement construction."""

    def test_unfiltered_query_has_no_where_clause(self) -> None:
        query = build(GeoFilters())
        data_sql = _sql(query.data)
        count_sql = _sql(query.count)

        assert "WHERE" not in data_sql
        assert "LIMIT" not in data_sql
        assert "ORDER BY spores.id ASC" in data_sql
        assert "WHERE" not in count_sql
        assert "count(*)" in count_sql

    def test_box_conditions_are_bound_not_interpolated(self) -> None:
        query = build(GeoFilters(min_lat=-34.123, max_lat=-33.5, min_lng=18.25, max_lng=19.75))
        data_sql = _sql(query.data)

        assert "spores.lat >= :" in data_sql
        assert "spores.lat <= :" in data_sql
        assert "spores.lng >= :" in data_sql
        assert "spores.lng <= :" in data_sql
        assert "-34.123" not in data_sql
        assert _params(query.data) == [-34.123, -33.5, 18.25, 19.75]

    def test_only_given_edges_appear(self) -> None:
        data_sql = _sql(build(GeoFilters(max_lng=10.0)).data)
        assert "spores.lng <= :" in data_sql
        assert "spores.lat" not in data_sql.split("WHERE", 1)[1]
        assert "spores.lng >=" not in data_sql

    def test_cursor_applies_to_page_only(self) -> None:
        query = build(GeoFilters(min_lat=0.0, cursor=7, limit=3))
        data_sql = _sql(query.data)
        count_sql = _sql(query.count)

        assert "spores.id > :" in data_sql
        assert "LIMIT" in data_sql
        assert _params(query.data) == [0.0, 3, 7]

        assert "spores.id" not in count_sql
        assert "LIMIT" not in count_sql
        assert "ORDER BY" not in count_sql
        assert _params(query.count) == [0.0]

    def test_count_shares_box_conditions(self) -> None:
        query = build(GeoFilters(min_lat=1.0, max_lng=2.0))
        assert "spores.lat >= :" in _sql(query.count)
        assert "spores.lng <= :" in _sql(query.count)
        assert _params(query.count) == [1.0, 2.0]


class TestExecution:
    """Statements run against a real SQLite database."""

    def test_box_filters_rows(self, db_session, seeded_spores) -> None:
        southern = build(GeoFilters(max_lat=0.0))
        rows = list(db_session.scalars(southern.data))
        assert [row.message for row in rows] == ["spore 0", "spore 4", "spore 6"]
        assert db_session.scalar(southern.count) == 3

    def test_pages_are_ordered_by_id(self, db_session, seeded_spores) -> None:
        first = list(db_session.scalars(build(GeoFilters(limit=3)).data))
        second = list(
            db_session.scalars(build(GeoFilters(cursor=first[-1].id, limit=3)).data)
        )
        ids = [row.id for row in first + second]
        assert ids == sorted(ids)
        assert ids == [spore.id for spore in seeded_spores[:6]]

    def test_inverted_box_matches_nothing(self, db_session, seeded_spores) -> None:
        query = build(GeoFilters(min_lat=10.0, max_lat=-10.0))
        assert list(db_session.scalars(query.data)) == []
        assert db_session.scalar(query.count) == 0
