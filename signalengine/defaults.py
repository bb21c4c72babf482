"""
Aggregation Parameter Defaults, Schemas, and Validation.

This module defines every tunable aggregation parameter, its validation rules,
and a documented schema that the configuration endpoint exposes.

All parameters are documented with:
- Name and type
- Description
- Default value
- Validation rules
- Impact description
"""

import math
from typing import Any, Dict, List, Tuple

# =============================================================================
# DEFAULT AGGREGATION PARAMETERS
# =============================================================================

DEFAULT_AGGREGATION_PARAMETERS: Dict[str, Any] = {
    # -------------------------------------------------------------------------
    # Method Selection
    # -------------------------------------------------------------------------
    "aggregation_method": "ensemble",
    "ensemble_weights": {
        "confidence_weighted": 0.4,
        "consensus": 0.3,
        "performance_weighted": 0.3,
    },
    "use_adaptive_weights": True,
    "use_time_decay": True,
    # -------------------------------------------------------------------------
    # Conflict Handling
    # -------------------------------------------------------------------------
    "conflict_tolerance": 0.2,
    "conflict_resolution": "weighted_average",
    "max_conflict_severity": 0.8,
    # -------------------------------------------------------------------------
    # Validation Gate
    # -------------------------------------------------------------------------
    "min_signal_strength": 0.5,
    "min_consensus": 0.6,
    "min_confidence": 0.3,
    "min_risk_reward": 1.0,
    # -------------------------------------------------------------------------
    # Position Sizing
    # -------------------------------------------------------------------------
    "base_risk_pct": 0.02,
    "min_position_size": 0.01,
    "max_position_size": 0.10,
    # -------------------------------------------------------------------------
    # Market Context
    # -------------------------------------------------------------------------
    "high_volatility_threshold": 1.5,
    "low_volatility_threshold": 0.5,
    # -------------------------------------------------------------------------
    # Source Performance
    # -------------------------------------------------------------------------
    "performance_window": 50,
    "reliability_smoothing": 0.1,
    # -------------------------------------------------------------------------
    # Capacities
    # -------------------------------------------------------------------------
    "max_signals_per_instrument": 100,
    "max_aggregated_history": 500,
}

AGGREGATION_METHODS = [
    "confidence_weighted",
    "consensus",
    "performance_weighted",
    "ensemble",
]

ENSEMBLE_COMPONENTS = ["confidence_weighted", "consensus", "performance_weighted"]


# =============================================================================
# PARAMETER SCHEMA
# =============================================================================

PARAMETER_SCHEMA: Dict[str, Dict[str, Any]] = {
    "aggregation_method": {
        "type": "string",
        "description": (
            "Algorithm used to combine active signals. 'ensemble' blends the "
            "three other methods; 'consensus' is a confidence-weighted majority "
            "vote; 'performance_weighted' trusts sources by recent win rate."
        ),
        "default": "ensemble",
        "allowed_values": AGGREGATION_METHODS,
        "impact": "Changes how disagreement between sources is settled.",
    },
    "ensemble_weights": {
        "type": "dict",
        "description": (
            "Blend weights of the ensemble components. Normalised by their sum, "
            "so {'confidence_weighted': 2, 'consensus': 1, "
            "'performance_weighted': 1} is the same as 0.5/0.25/0.25."
        ),
        "default": {
            "confidence_weighted": 0.4,
            "consensus": 0.3,
            "performance_weighted": 0.3,
        },
        "impact": "Only used when aggregation_method = 'ensemble'.",
    },
    "use_adaptive_weights": {
        "type": "boolean",
        "description": (
            "Use performance-adjusted source weights instead of the weights "
            "configured at registration."
        ),
        "default": True,
        "impact": "Well performing sources gain influence over time.",
    },
    "use_time_decay": {
        "type": "boolean",
        "description": (
            "Discount older signals with a half-life of half their validity window."
        ),
        "default": True,
        "impact": "Fresh signals dominate stale ones.",
    },
    "conflict_tolerance": {
        "type": "float",
        "description": (
            "Fraction of the total vote by which the winning side must lead in "
            "consensus voting. Below it the vote is neutral."
        ),
        "default": 0.2,
        "min": 0.0,
        "max": 1.0,
        "impact": "Higher values produce more neutral votes.",
    },
    "conflict_resolution": {
        "type": "string",
        "description": (
            "'weighted_average' lets the method weigh both sides, "
            "'strongest_wins' drops signals opposing the strongest one, "
            "'hold' forces a neutral composite on a severe conflict."
        ),
        "default": "weighted_average",
        "allowed_values": ["weighted_average", "strongest_wins", "hold"],
        "impact": "Determines behaviour when sources disagree.",
    },
    "max_conflict_severity": {
        "type": "float",
        "description": "Conflict severity at which the 'hold' resolution applies.",
        "default": 0.8,
        "min": 0.0,
        "max": 1.0,
        "impact": "Lower values hold more often.",
    },
    "min_signal_strength": {
        "type": "float",
        "description": "Minimum composite strength for a composite to be accepted.",
        "default": 0.5,
        "min": 0.0,
        "max": 1.0,
        "impact": "Filters weak composites.",
    },
    "min_consensus": {
        "type": "float",
        "description": "Minimum pairwise agreement among contributing signals.",
        "default": 0.6,
        "min": 0.0,
        "max": 1.0,
        "impact": "Filters composites built from disagreeing sources.",
    },
    "min_confidence": {
        "type": "float",
        "description": "Absolute confidence floor after market-context adjustment.",
        "default": 0.3,
        "min": 0.0,
        "max": 1.0,
        "impact": "Filters low-conviction composites.",
    },
    "min_risk_reward": {
        "type": "float",
        "description": "Minimum reward/risk ratio of the synthesized levels.",
        "default": 1.0,
        "min": 0.0,
        "max": 100.0,
        "impact": "Filters trades with poor payoff.",
    },
    "base_risk_pct": {
        "type": "float",
        "description": "Base account risk per trade before scaling (0.02 = 2%).",
        "default": 0.02,
        "min": 0.0,
        "max": 1.0,
        "impact": "Scales every position size recommendation.",
    },
    "min_position_size": {
        "type": "float",
        "description": "Lower clamp of the position size recommendation.",
        "default": 0.01,
        "min": 0.0,
        "max": 1.0,
        "impact": "Smallest recommended risk fraction.",
    },
    "max_position_size": {
        "type": "float",
        "description": "Upper clamp of the position size recommendation.",
        "default": 0.10,
        "min": 0.0,
        "max": 1.0,
        "impact": "Largest recommended risk fraction.",
    },
    "high_volatility_threshold": {
        "type": "float",
        "description": "Volatility ratio at or above which the regime is 'high'.",
        "default": 1.5,
        "min": 0.0,
        "max": 100.0,
        "impact": "Confidence x0.8 and quality -5 in high volatility.",
    },
    "low_volatility_threshold": {
        "type": "float",
        "description": "Volatility ratio at or below which the regime is 'very_low'.",
        "default": 0.5,
        "min": 0.0,
        "max": 100.0,
        "impact": "Confidence x1.2 and quality +5 in very low volatility.",
    },
    "performance_window": {
        "type": "integer",
        "description": "Number of recent outcomes used for a source's win rate.",
        "default": 50,
        "min": 1,
        "max": 10000,
        "impact": "Smaller windows react faster to performance changes.",
    },
    "reliability_smoothing": {
        "type": "float",
        "description": "EMA factor applied to each reported outcome.",
        "default": 0.1,
        "min": 0.0,
        "max": 1.0,
        "impact": "Higher values make adaptive weights move faster.",
    },
    "max_signals_per_instrument": {
        "type": "integer",
        "description": "Capacity of the per-instrument input signal queue.",
        "default": 100,
        "min": 1,
        "max": 100000,
        "impact": "Oldest signals are evicted beyond this capacity.",
    },
    "max_aggregated_history": {
        "type": "integer",
        "description": "Capacity of the accepted composite history.",
        "default": 500,
        "min": 1,
        "max": 1000000,
        "impact": "Oldest composites are evicted beyond this capacity.",
    },
}


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================


def validate_parameters(parameters: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Validate aggregation parameters against schema.

    Args:
        parameters: Dictionary of parameters to validate

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: List[str] = []

    for param_name, param_value in parameters.items():
        if param_name not in PARAMETER_SCHEMA:
            errors.append(f"Unknown parameter: {param_name}")
            continue

        schema: Dict[str, Any] = PARAMETER_SCHEMA[param_name]
        param_type: str = schema["type"]

        # Type validation
        if param_type == "integer" and (
            isinstance(param_value, bool) or not isinstance(param_value, int)
        ):
            errors.append(f"{param_name} must be integer, got {type(param_value)}")
            continue

        if param_type == "float" and (
            isinstance(param_value, bool) or not isinstance(param_value, (int, float))
        ):
            errors.append(f"{param_name} must be float, got {type(param_value)}")
            continue

        if param_type == "float" and not math.isfinite(param_value):
            errors.append(f"{param_name} must be a finite number, got {param_value}")
            continue

        if param_type == "string" and not isinstance(param_value, str):
            errors.append(f"{param_name} must be string, got {type(param_value)}")
            continue

        if param_type == "boolean" and not isinstance(param_value, bool):
            errors.append(f"{param_name} must be boolean, got {type(param_value)}")
            continue

        if param_type == "dict" and not isinstance(param_value, dict):
            errors.append(f"{param_name} must be dict, got {type(param_value)}")
            continue

        # Range validation
        if "min" in schema and param_value < schema["min"]:
            errors.append(f"{param_name} must be >= {schema['min']}, got {param_value}")

        if "max" in schema and param_value > schema["max"]:
            errors.append(f"{param_name} must be <= {schema['max']}, got {param_value}")

        # Allowed values validation
        if "allowed_values" in schema and param_value not in schema["allowed_values"]:
            errors.append(
                f"{param_name} must be one of {schema['allowed_values']}, "
                f"got {param_value}"
            )

    if "ensemble_weights" in parameters and isinstance(
        parameters["ensemble_weights"], dict
    ):
        errors.extend(_validate_ensemble_weights(parameters["ensemble_weights"]))

    errors.extend(_validate_cross_field(parameters))

    return len(errors) == 0, errors


def _validate_ensemble_weights(weights: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    for name, weight in weights.items():
        if name not in ENSEMBLE_COMPONENTS:
            errors.append(f"ensemble_weights has unknown component: {name}")
        elif isinstance(weight, bool) or not isinstance(weight, (int, float)):
            errors.append(f"ensemble_weights[{name}] must be a number")
        elif not math.isfinite(weight):
            errors.append(f"ensemble_weights[{name}] must be a finite number")
        elif weight < 0:
            errors.append(f"ensemble_weights[{name}] must be >= 0, got {weight}")
    numeric = [
        w
        for w in weights.values()
        if isinstance(w, (int, float)) and not isinstance(w, bool)
    ]
    if not errors and sum(numeric) <= 0:
        errors.append("ensemble_weights must have a positive sum")
    return errors


def _validate_cross_field(parameters: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    low = parameters.get("min_position_size")
    high = parameters.get("max_position_size")
    if isinstance(low, (int, float)) and isinstance(high, (int, float)) and low > high:
        errors.append(
            f"min_position_size ({low}) must not exceed max_position_size ({high})"
        )

    low_vol = parameters.get("low_volatility_threshold")
    high_vol = parameters.get("high_volatility_threshold")
    if (
        isinstance(low_vol, (int, float))
        and isinstance(high_vol, (int, float))
        and low_vol >= high_vol
    ):
        errors.append(
            f"low_volatility_threshold ({low_vol}) must be below "
            f"high_volatility_threshold ({high_vol})"
        )
    return errors


def get_parameter_schema() -> Dict[str, Any]:
    """Get complete parameter schema for API documentation."""
    return PARAMETER_SCHEMA


def get_default_parameters() -> Dict[str, Any]:
    """Get default aggregation parameters."""
    defaults = DEFAULT_AGGREGATION_PARAMETERS.copy()
    defaults["ensemble_weights"] = dict(defaults["ensemble_weights"])
    return defaults


def merge_parameters(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge override parameters into base parameters.

    Args:
        base: Base parameters
        override: Override parameters

    Returns:
        Merged parameters
    """
    result = base.copy()
    result.update(override)
    return result
