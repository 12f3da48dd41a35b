import pytest

from uniterrors import CycleDetectedError, ParseError, UnitNotFoundError, UnitsError
from unitexpr import (
    Expression,
    Term,
    evaluate,
    expand_derived_units,
    find_users,
    format_expression,
    normalize,
    parse_expression,
    parse_term,
    refers_to_unit,
    validate,
)


def test_parse_expression_with_coefficient():
    expr = parse_expression("36*km*h^-1")
    assert expr.coefficient == 36.0
    assert expr.terms == [Term("km", 1), Term("h", -1)]


def test_parse_expression_without_coefficient():
    expr = parse_expression("kg*m^2*s^-2")
    assert expr.coefficient == 1.0
    assert expr.terms == [Term("kg"), Term("m", 2), Term("s", -2)]


def test_only_leading_number_is_a_coefficient():
    expr = parse_expression("m*2")
    assert expr.coefficient == 1.0
    assert expr.terms == [Term("m"), Term("2")]


def test_coefficient_only_expression_has_no_terms():
    expr = parse_expression(" 2.5 ")
    assert expr.coefficient == 2.5
    assert expr.terms == []


def test_parse_term_trims_whitespace():
    assert parse_term(" kg ^ 3 ") == Term("kg", 3)
    assert parse_term("s^+2") == Term("s", 2)


@pytest.mark.parametrize("token", ["m^2^3", "", "   ", "^2", "m^x", "m^1.5", "m^"])
def test_parse_term_rejects_malformed_terms(token):
    with pytest.raises(ParseError):
        parse_term(token)


def test_parse_error_names_the_term():
    with pytest.raises(ParseError, match=r"'m\^2\^3'"):
        parse_expression("kg*m^2^3")


def test_empty_expression_is_rejected():
    with pytest.raises(ParseError):
        parse_expression("")


def test_validate_reports_unknown_unit(registry):
    validate(parse_expression("kg*m"), registry)
    with pytest.raises(UnitNotFoundError, match="'furlong'"):
        validate(parse_expression("m*furlong*parsec"), registry)


def test_refers_to_unit_is_not_recursive(speed_registry):
    expr = parse_expression("36*kmh")
    assert refers_to_unit(expr, "kmh")
    assert not refers_to_unit(expr, "km")


def test_find_users(speed_registry):
    assert find_users(speed_registry, "km") == ["kmh"]
    assert find_users(speed_registry, "m") == ["km"]
    assert find_users(speed_registry, "kmh") == []


def test_base_units_are_left_unchanged(registry):
    for name in registry.names():
        expr = Expression(1.0, [Term(name, 3)])
        assert expand_derived_units(expr, registry) == expr


def test_exponents_are_combined():
    expr = normalize(parse_expression("m^2*m^-1"))
    assert expr.terms == [Term("m", 1)]
    assert format_expression(expr) == "m"


def test_cancelled_terms_are_dropped():
    expr = normalize(parse_expression("3*m*s*m^-1"))
    assert expr.coefficient == 3.0
    assert expr.terms == [Term("s", 1)]


def test_normalize_is_idempotent():
    expr = parse_expression("2*s*kg*m^3*s^-2*kg^-1")
    once = normalize(expr)
    assert normalize(once) == once
    assert once.terms == [Term("m", 3), Term("s", -1)]


def test_format_round_trip():
    expr = normalize(parse_expression("0.5*kg*m^2*s^-2*A"))
    assert normalize(parse_expression(format_expression(expr))) == expr


def test_format_expression():
    assert format_expression(Expression(1.0, [])) == "1"
    assert format_expression(Expression(5.0, [])) == "1"
    assert format_expression(Expression(1.0, [Term("m"), Term("s", -1)])) == "m*s^-1"
    assert format_expression(Expression(0.5, [Term("kg", 2)])) == "0.500000*kg^2"
    assert str(Term("m", 0)) == "1"


def test_coefficient_is_raised_to_exponent(registry):
    registry.add("km", "1000*m")
    expr = evaluate("2*km^2", registry)
    assert expr.coefficient == 2000000.0
    assert expr.terms == [Term("m", 2)]
    assert str(expr) == "2000000.000000*m^2"


def test_negative_exponent_inverts_coefficient(registry):
    registry.add("km", "1000*m")
    expr = evaluate("km^-1", registry)
    assert expr.coefficient == pytest.approx(0.001)
    assert expr.terms == [Term("m", -1)]


def test_derived_of_derived(speed_registry):
    expr = evaluate("36*kmh", speed_registry)
    assert expr.coefficient == pytest.approx(10.0)
    assert expr.terms == [Term("m", 1), Term("s", -1)]
    assert str(expr) == "10.000000*m*s^-1"


def test_same_unit_reached_twice_is_not_a_cycle(registry):
    registry.add("km", "1000*m")
    registry.add("km2", "km*km")
    expr = evaluate("km2*km^-1", registry)
    assert expr.coefficient == pytest.approx(1000.0)
    assert expr.terms == [Term("m", 1)]


def test_cycle_is_detected(registry):
    registry.add("a", "2*b")
    registry.add("b", "c*m")
    registry.add("c", "a^2")
    with pytest.raises(CycleDetectedError) as excinfo:
        evaluate("a", registry)
    assert excinfo.value.chain == ["a", "b", "c", "a"]


def test_self_reference_is_a_cycle(registry):
    registry.add("x", "m*x")
    with pytest.raises(CycleDetectedError, match="'x' -> 'x'"):
        evaluate("x", registry)


def test_expansion_reports_unknown_unit_in_formula(registry):
    registry.add("bad", "m*nope")
    with pytest.raises(UnitNotFoundError, match="'nope'"):
        evaluate("bad", registry)


def test_zero_coefficient_with_negative_exponent(registry):
    registry.add("nothing", "0*m")
    with pytest.raises(UnitsError, match="'nothing'"):
        evaluate("nothing^-1", registry)


@pytest.mark.parametrize("text", ["1_000*m", "١٢*m"])
def test_coefficient_must_be_plain_ascii_number(text):
    expr = parse_expression(text)
    assert expr.coefficient == 1.0
    assert expr.terms[0] == Term(text.split("*")[0])


def test_coefficient_forms():
    assert parse_expression("1e3*m").coefficient == 1000.0
    assert parse_expression("-.5*m").coefficient == -0.5
    assert parse_expression("+2*m").coefficient == 2.0


@pytest.mark.parametrize("token", ["m^1_0", "m^٢", "m^ 2 3"])
def test_exponent_must_be_plain_ascii_integer(token):
    with pytest.raises(ParseError):
        parse_term(token)


def test_coefficient_overflow_is_reported(registry):
    registry.add("km", "1e200*m")
    with pytest.raises(UnitsError, match="'km'"):
        evaluate("1e200*km", registry)


def test_coefficient_overflow_in_power_is_reported(registry):
    registry.add("km", "1e200*m")
    with pytest.raises(UnitsError, match="'km'"):
        evaluate("km^2", registry)
