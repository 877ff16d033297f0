import pytest
from datetime import datetime
from sqlalchemy import select
from sqlalchemy.dialects import sqlite

from app.core.exceptions import ValidationFailed, QueryCastError
from app.models.tours import Tour, Difficulty
from app.services import geo
from app.services.query import QueryBuilder, cast_value
from app.services.tours import slugify, apply_alias, TOP_TOURS_ALIAS


def compiled(clause):
    return str(clause.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))


@pytest.fixture
def builder():
    return QueryBuilder(Tour, filterable={"price", "difficulty", "duration", "created_at"})


def test_build_filters_operators(builder):
    """Test bracketed operators map onto comparisons"""
    clauses = builder.build_filters([("price[gte]", "100"), ("duration[lt]", "7"), ("price[ne]", "500")])

    rendered = [compiled(c) for c in clauses]
    assert rendered == ["tour.price >= 100.0", "tour.duration < 7", "tour.price != 500.0"]


def test_build_filters_repeated_key_becomes_in(builder):
    clauses = builder.build_filters([("difficulty", "easy"), ("difficulty", "medium")])

    assert len(clauses) == 1
    assert "IN" in compiled(clauses[0])


def test_build_filters_ignores_reserved_keys(builder):
    assert builder.build_filters([("page", "2"), ("sort", "price"), ("limit", "5"), ("fields", "name")]) == []


def test_build_filters_rejects_unknown_fields(builder):
    with pytest.raises(ValidationFailed):
        builder.build_filters([("secret_tour", "true")])

    with pytest.raises(ValidationFailed):
        builder.build_filters([("price[regex]", "1")])


def test_build_filters_ignore_policy():
    lenient = QueryBuilder(Tour, filterable={"price"}, unknown_policy="ignore")

    assert lenient.build_filters([("secret_tour", "true"), ("price[regex]", "1")]) == []


def test_build_sort_has_sid_tiebreak(builder):
    order_by = builder.build_sort("-price,duration")

    assert [compiled(c) for c in order_by] == ["tour.price DESC", "tour.duration ASC", "tour.sid ASC"]


def test_build_sort_default(builder):
    assert [compiled(c) for c in builder.build_sort(None)] == ["tour.created_at DESC", "tour.sid ASC"]


def test_build_paging_and_fields(builder):
    query = builder.build([("page", "3"), ("limit", "10"), ("fields", "name,price")])

    assert query.offset == 20
    assert query.limit == 10
    assert query.project({"sid": "x", "name": "n", "price": 1, "summary": "s"}) == {"sid": "x", "name": "n", "price": 1}


def test_build_excluded_fields(builder):
    query = builder.build([("fields", "-summary,-price")])

    assert query.project({"sid": "x", "name": "n", "price": 1, "summary": "s"}) == {"sid": "x", "name": "n"}


@pytest.mark.parametrize("raw", ["0", "-1", "abc"])
def test_build_rejects_bad_paging(builder, raw):
    with pytest.raises(ValidationFailed):
        builder.build([("page", raw)])


def test_cast_value_types():
    assert cast_value(Tour.__table__.c.price, "price", "12.5") == 12.5
    assert cast_value(Tour.__table__.c.secret_tour, "secret_tour", "false") is False
    assert cast_value(Tour.__table__.c.difficulty, "difficulty", "easy") is Difficulty.EASY
    assert cast_value(Tour.__table__.c.created_at, "created_at", "2026-01-02") == datetime(2026, 1, 2)

    with pytest.raises(QueryCastError) as excinfo:
        cast_value(Tour.__table__.c.duration, "duration", "long")
    assert excinfo.value.path == "duration"


def test_query_applies_to_select(builder):
    query = builder.build([("price[lte]", "900"), ("limit", "2")])

    sql = compiled(builder.apply(select(Tour), query))

    assert "WHERE tour.price <= 900.0" in sql
    assert "LIMIT 2 OFFSET 0" in sql


def test_parse_latlng():
    assert geo.parse_latlng("34.111745,-118.113491") == (34.111745, -118.113491)

    for bad in ("", "34.1", "a,b", "91,0", "1,2,3"):
        with pytest.raises(ValidationFailed):
            geo.parse_latlng(bad)


def test_check_unit():
    assert geo.check_unit("mi") == "mi"
    with pytest.raises(ValidationFailed):
        geo.check_unit("ft")


def test_within_radius_uses_unit_radius():
    location = {"type": "Point", "coordinates": [0.0, 1.0]}

    # one degree of latitude is ~69 miles / ~111 km
    assert geo.within_radius(location, 0.0, 0.0, 70, "mi")
    assert not geo.within_radius(location, 0.0, 0.0, 68, "mi")
    assert geo.within_radius(location, 0.0, 0.0, 112, "km")
    assert not geo.within_radius(None, 0.0, 0.0, 1000, "km")


def test_distance_to():
    location = {"type": "Point", "coordinates": [0.0, 1.0]}

    km = geo.distance_to(location, 0.0, 0.0, "km")
    mi = geo.distance_to(location, 0.0, 0.0, "mi")

    assert km == pytest.approx(111.3, abs=0.1)
    assert mi == pytest.approx(km * 1000 * 0.000621371)
    assert geo.distance_to({}, 0.0, 0.0, "km") is None


def test_slugify():
    assert slugify("The Forest Hiker") == "the-forest-hiker"
    assert slugify("  Café   Crème & Co ") == "cafe-creme-co"


def test_apply_alias_overrides_shaping_keys():
    params = apply_alias([("limit", "50"), ("difficulty", "easy")], TOP_TOURS_ALIAS)

    assert ("difficulty", "easy") in params
    assert ("limit", "5") in params
    assert ("limit", "50") not in params
