"""
Classification labelers for portfolio MetricsJSON.
Deterministic threshold-based classifications for volatility, risk, beta and portfolio health.

Percent inputs are in percent units (15.0 = 15%).
"""

from typing import Dict, Any, Optional


class LabelerError(Exception):
    """Raised when labeler input validation fails."""
    pass


def classify_vol_level(ann_vol: float) -> str:
    """
    Classify annualized volatility level.

    Thresholds:
    - low: < 15%
    - moderate: 15% - 25%
    - elevated: >= 25%

    Args:
        ann_vol: Annualized volatility in percent

    Returns:
        Classification level: "low", "moderate", or "elevated"

    Raises:
        LabelerError: If input is invalid
    """
    if ann_vol is None:
        raise LabelerError("Volatility cannot be None")

    if ann_vol < 0:
        raise LabelerError("Volatility must be non-negative")

    if ann_vol >= 500:
        raise LabelerError(f"Unrealistic volatility: {ann_vol}")

    if ann_vol < 15:
        return "low"
    elif ann_vol < 25:
        return "moderate"
    else:
        return "elevated"


def classify_risk_level(volatility: float, max_drawdown: float) -> str:
    """
    Combined risk level from volatility and max drawdown magnitude.

    - Low: volatility < 15 and drawdown < 10
    - Moderate: volatility < 25 and drawdown < 20
    - High: otherwise

    Args:
        volatility: Annualized volatility in percent
        max_drawdown: Max drawdown in percent (sign ignored)

    Returns:
        "Low", "Moderate" or "High"
    """
    if volatility is None or max_drawdown is None:
        raise LabelerError("Risk level needs volatility and max drawdown")

    drawdown = abs(max_drawdown)
    if volatility < 15 and drawdown < 10:
        return "Low"
    if volatility < 25 and drawdown < 20:
        return "Moderate"
    return "High"


def classify_drawdown_severity(max_drawdown_pct: Optional[float]) -> str:
    """
    Classify drawdown severity level.

    Thresholds:
    - minor: > -10%
    - moderate: -10% to -25%
    - severe: < -25%

    Args:
        max_drawdown_pct: Maximum drawdown in percent, zero or negative

    Returns:
        Severity level: "minor", "moderate", "severe" or "unknown"
    """
    if max_drawdown_pct is None:
        return "unknown"

    if max_drawdown_pct > 0:
        raise LabelerError("Drawdown should be negative or zero")

    dd_pct = abs(max_drawdown_pct)

    if dd_pct < 10:
        return "minor"
    elif dd_pct <= 25:
        return "moderate"
    else:
        return "severe"


def describe_beta(beta: Optional[float]) -> str:
    """Plain-language reading of a beta against a benchmark."""
    if beta is None:
        return "unknown"
    if beta < 0.5:
        return "Low volatility, defensive"
    if beta < 0.8:
        return "Below market volatility"
    if beta < 1.2:
        return "Market-like volatility"
    if beta < 1.5:
        return "Above market volatility"
    return "High volatility, aggressive"


def _tier(value: Optional[float], tiers, higher_is_better: bool = True) -> int:
    # tiers: [(threshold, points)] from best to worst; strict comparisons
    if value is None:
        return 0
    for threshold, points in tiers:
        if (value > threshold) if higher_is_better else (value < threshold):
            return points
    return 0


def calculate_health_score(risk: Dict[str, Any]) -> Dict[str, Any]:
    """
    Portfolio health score out of 100.

    Points:
    - Sharpe (30): > 1.5 → 30, > 1 → 25, > 0.5 → 15, > 0 → 5
    - Volatility (20): < 10 → 20, < 15 → 15, < 25 → 10, < 35 → 5
    - Max drawdown magnitude (20): < 5 → 20, < 10 → 15, < 20 → 10, < 30 → 5
    - Calmar (15): > 2 → 15, > 1 → 10, > 0.5 → 5
    - Information ratio (15): > 1 → 15, > 0.5 → 10, > 0 → 5

    Undefined ratios (None) score zero points.

    Args:
        risk: RiskMetrics dict (volatility, sharpe_ratio, max_drawdown,
            calmar_ratio, information_ratio)

    Returns:
        {'score', 'level', 'components'} with level Excellent/Good/Fair/Poor
    """
    if risk is None:
        raise LabelerError("Health score needs risk metrics")

    drawdown = risk.get('max_drawdown')
    components = {
        'sharpe': _tier(risk.get('sharpe_ratio'), [(1.5, 30), (1.0, 25), (0.5, 15), (0, 5)]),
        'volatility': _tier(risk.get('volatility'), [(10, 20), (15, 15), (25, 10), (35, 5)], higher_is_better=False),
        'max_drawdown': _tier(abs(drawdown) if drawdown is not None else None,
                              [(5, 20), (10, 15), (20, 10), (30, 5)], higher_is_better=False),
        'calmar': _tier(risk.get('calmar_ratio'), [(2, 15), (1, 10), (0.5, 5)]),
        'information_ratio': _tier(risk.get('information_ratio'), [(1, 15), (0.5, 10), (0, 5)]),
    }

    score = sum(components.values())
    return {
        'score': score,
        'level': classify_health_level(score),
        'components': components,
    }


def classify_health_level(score: int) -> str:
    """Excellent (>= 80), Good (>= 60), Fair (>= 40), otherwise Poor."""
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Poor"


def diversification_score(betas: Dict[str, Optional[float]]) -> Optional[int]:
    """
    Diversification score from the average absolute beta across benchmarks.

    < 0.5 → 90, < 0.8 → 70, < 1.2 → 50, otherwise 30.

    Returns:
        Score, or None without any beta
    """
    values = [abs(b) for b in betas.values() if b is not None]
    if not values:
        return None

    avg_beta = sum(values) / len(values)
    if avg_beta < 0.5:
        return 90
    if avg_beta < 0.8:
        return 70
    if avg_beta < 1.2:
        return 50
    return 30


def classify_return_performance(annualized_return: Optional[float]) -> str:
    """
    Classify annualized return (percent).

    strong > 20, positive > 5, flat > -5, negative > -20, otherwise poor.
    """
    if annualized_return is None:
        return "unknown"

    if annualized_return > 20:
        return "strong"
    elif annualized_return > 5:
        return "positive"
    elif annualized_return > -5:
        return "flat"
    elif annualized_return > -20:
        return "negative"
    else:
        return "poor"
