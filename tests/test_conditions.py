import pytest

from tele_weather_alerts.conditions import (
    evaluate,
    is_known_operator,
    normalize_operator,
    normalize_parameter,
    operator_symbol,
)
from tele_weather_alerts.models.alerts import Operator, Parameter


@pytest.mark.parametrize(
    "value, operator, threshold, expected",
    [
        (20, Operator.GT, 15, True),
        (15, Operator.GT, 15, False),
        (10, Operator.LT, 15, True),
        (15, Operator.GTE, 15, True),
        (15, Operator.LTE, 15, True),
        (16, Operator.LTE, 15, False),
        (15.0, Operator.EQ, 15.0, True),
    ],
)
def test_evaluate_operators(value, operator, threshold, expected) -> None:
    assert evaluate(value, operator, threshold) is expected


def test_eq_is_exact() -> None:
    assert evaluate(0.1 + 0.2, Operator.EQ, 0.3) is False


def test_unknown_operator_is_false(caplog) -> None:
    assert evaluate(100, "between", 0) is False
    assert "Unknown operator" in caplog.text


def test_normalize_operator_accepts_symbols_and_names() -> None:
    assert normalize_operator(">") is Operator.GT
    assert normalize_operator(">=") is Operator.GTE
    assert normalize_operator("==") is Operator.EQ
    assert normalize_operator("LT") is Operator.LT
    assert normalize_operator("!=") is None
    assert normalize_operator("") is None
    assert is_known_operator("lte")
    assert not is_known_operator("between")


def test_operator_symbol() -> None:
    assert operator_symbol(Operator.GTE) == ">="
    assert operator_symbol("gt") == ">"
    assert operator_symbol("weird") == "weird"


def test_normalize_parameter_aliases() -> None:
    assert normalize_parameter("temperature") is Parameter.TEMPERATURE
    assert normalize_parameter("windSpeed") is Parameter.WIND_SPEED
    assert normalize_parameter("WINDSPEED") is Parameter.WIND_SPEED
    assert normalize_parameter("rain") is Parameter.PRECIPITATION
    assert normalize_parameter("clouds") is Parameter.CLOUD_COVER
    assert normalize_parameter("pressure") is None
