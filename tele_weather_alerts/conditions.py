"""Threshold comparison for alert conditions."""

from __future__ import annotations

import logging

from .models.alerts import Operator, Parameter

logger = logging.getLogger(__name__)

OPERATOR_ALIASES: dict[str, Operator] = {
    ">": Operator.GT,
    "<": Operator.LT,
    ">=": Operator.GTE,
    "<=": Operator.LTE,
    "=": Operator.EQ,
    "==": Operator.EQ,
}

OPERATOR_SYMBOLS: dict[Operator, str] = {
    Operator.GT: ">",
    Operator.LT: "<",
    Operator.GTE: ">=",
    Operator.LTE: "<=",
    Operator.EQ: "=",
}


def normalize_operator(raw: object) -> Operator | None:
    """Map an operator name or symbol to an `Operator`, or None if unknown."""
    if isinstance(raw, Operator):
        return raw
    text = str(raw or "").strip().lower()
    if not text:
        return None
    if text in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[text]
    try:
        return Operator(text)
    except ValueError:
        return None


def is_known_operator(raw: object) -> bool:
    return normalize_operator(raw) is not None


def operator_symbol(raw: object) -> str:
    op = normalize_operator(raw)
    return OPERATOR_SYMBOLS[op] if op else str(raw)


def evaluate(value: float, operator: Operator | str, threshold: float) -> bool:
    """Return True when `value <operator> threshold` holds.

    `eq` is exact float equality with no tolerance, so it rarely matches
    real sensor readings. Unknown operators are logged and evaluate to False.
    """
    op = normalize_operator(operator)
    if op is None:
        logger.error("Unknown operator: %s", operator)
        return False
    if op is Operator.GT:
        return value > threshold
    if op is Operator.LT:
        return value < threshold
    if op is Operator.GTE:
        return value >= threshold
    if op is Operator.LTE:
        return value <= threshold
    return value == threshold


PARAMETER_ALIASES: dict[str, Parameter] = {
    "temp": Parameter.TEMPERATURE,
    "wind": Parameter.WIND_SPEED,
    "windspeed": Parameter.WIND_SPEED,
    "rain": Parameter.PRECIPITATION,
    "precipitation": Parameter.PRECIPITATION,
    "precipitationintensity": Parameter.PRECIPITATION,
    "clouds": Parameter.CLOUD_COVER,
    "cloudcover": Parameter.CLOUD_COVER,
}


def normalize_parameter(raw: object) -> Parameter | None:
    """Map a parameter name or short alias to a `Parameter`."""
    if isinstance(raw, Parameter):
        return raw
    text = str(raw or "").strip().lower()
    for param in Parameter:
        if text == param.value.lower():
            return param
    return PARAMETER_ALIASES.get(text)
