"""
Predictive Valuation Forecaster

Projects a property's value to a future date from its valuation history.

Model selection by number of historical valuations (N):
- N >= 5:  time_series_analysis  (least-squares regression on epoch ms)
- N 3-4:   linear_trend          (mean annualised period change, compounded)
- N == 2:  simple_extrapolation  (single annualised rate, compounded)
- N 0-1:   limited_data          (property-type default growth rate)

Annual rates come only from snapshot pairs at least 30 days apart and
are clamped to [-50%, +100%]; predicted values are capped at
MAX_PREDICTED_VALUE. Confidence is scored independently of the chosen
model, and a monthly seasonal multiplier is applied when N >= 4. Thin
history never fails; it lowers the confidence score instead.
"""

import math
from dataclasses import dataclass
from datetime import date
from statistics import StatisticsError, fmean, linear_regression, pstdev
from typing import List, Optional, Sequence

from utils.formatting import round_half_up

from ..factors import (
    ExtrapolationFactors,
    LimitedDataFactors,
    RegressionFactors,
    TrendFactors,
    ValuationFactors,
)
from ..models import (
    Property,
    PropertyType,
    PropertyValuation,
    ValuationMethod,
    ValuationStatus,
)


# =============================================================================
# Configuration Constants
# =============================================================================

EPOCH = date(1970, 1, 1)
MS_PER_DAY = 86_400_000
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365
MS_PER_YEAR = DAYS_PER_YEAR * MS_PER_DAY

# Model selection thresholds
MIN_POINTS_TIME_SERIES = 5
MIN_POINTS_LINEAR_TREND = 3
MIN_POINTS_SEASONAL = 4

DEFAULT_GROWTH_RATES = {
    PropertyType.RESIDENTIAL: 0.035,
    PropertyType.COMMERCIAL: 0.030,
    PropertyType.INDUSTRIAL: 0.025,
    PropertyType.AGRICULTURAL: 0.020,
}
FALLBACK_GROWTH_RATE = 0.030

DEFAULT_MARKET_VALUE_MULTIPLIER = 1.05

# Annualisation bounds
MIN_ANNUALIZATION_DAYS = 30
MIN_ANNUAL_CHANGE_RATE = -0.5
MAX_ANNUAL_CHANGE_RATE = 1.0
MAX_PREDICTED_VALUE = 1e12

# Confidence scoring caps
HISTORY_POINTS_PER_VALUATION = 10
HISTORY_POINTS_CAP = 30
SPAN_POINTS_CAP = 30
DISTANCE_PENALTY_PER_MONTH = 0.5
DISTANCE_PENALTY_CAP = 20
CONSISTENCY_POINTS_CAP = 20
CONSISTENT_STDDEV = 0.01

SYSTEM_ASSESSOR_ID = 0

ALGORITHMS = {
    "time_series_analysis": "ordinary_least_squares",
    "linear_trend": "average_annualized_change",
    "simple_extrapolation": "direct_projection",
    "limited_data": "market_average_growth",
}


@dataclass(frozen=True)
class ModelSelection:
    """The forecasting model chosen for a history."""
    method: str
    algorithm: str
    data_points: int


@dataclass(frozen=True)
class ModelFit:
    """Unrounded model output before seasonal adjustment."""
    assessed_value: float
    market_value: float
    taxable_value: float
    annual_change_rate: float
    factors: ValuationFactors


def epoch_ms(value: date) -> int:
    """Milliseconds since the Unix epoch at midnight UTC."""
    return (value - EPOCH).days * MS_PER_DAY


def _years_between(start: date, end: date) -> float:
    return (end - start).days / DAYS_PER_YEAR


def _months_between(start: date, end: date) -> float:
    return (end - start).days / DAYS_PER_MONTH


def _bounded_value(value: float) -> float:
    """Clamp a predicted value to [0, MAX_PREDICTED_VALUE]; NaN becomes 0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(value, MAX_PREDICTED_VALUE))


def _annual_rate(older: PropertyValuation, newer: PropertyValuation) -> Optional[float]:
    """
    Annualised change between two snapshots, or None when the gap is too
    short to annualise (same-period corrections) or the base is not positive.
    """
    days = (newer.assessment_date - older.assessment_date).days
    if older.assessed_value <= 0 or days < MIN_ANNUALIZATION_DAYS:
        return None
    rate = (newer.assessed_value - older.assessed_value) / older.assessed_value / (days / DAYS_PER_YEAR)
    return max(MIN_ANNUAL_CHANGE_RATE, min(rate, MAX_ANNUAL_CHANGE_RATE))


def _compound(value: float, rate: float, years: float) -> float:
    base = 1 + rate
    if base <= 0:
        return 0.0
    try:
        growth = base ** years
    except OverflowError:
        growth = math.inf
    return _bounded_value(value * growth)


class PredictiveValuationForecaster:
    """
    Forecasts a future valuation from historical snapshots.

    Pure: holds no state between calls and performs no I/O.
    """

    def predict(
        self,
        prop: Property,
        historical: Sequence[PropertyValuation],
        prediction_date: date,
    ) -> PropertyValuation:
        """
        Produce a predicted valuation for a property.

        Args:
            prop: The property being forecast
            historical: Past valuations for the property, any order
            prediction_date: Date to forecast to

        Returns:
            Unpersisted PropertyValuation with method predictive_model
        """
        valuations = self.prepare_history(historical)

        selection = self.select_model(valuations)
        confidence = self.confidence_score(valuations, prediction_date)
        fit = self._fit(selection, prop, valuations, prediction_date)
        seasonal = self.seasonal_adjustment(valuations, prediction_date)

        assessed_value = round_half_up(fit.assessed_value * seasonal)
        market_value = round_half_up(fit.market_value * seasonal)
        taxable_value = min(assessed_value, round_half_up(fit.taxable_value * seasonal))

        return PropertyValuation(
            property_id=prop.id,
            tenant_id=prop.tenant_id,
            assessed_value=assessed_value,
            market_value=market_value,
            taxable_value=taxable_value,
            assessment_date=prediction_date,
            effective_date=prediction_date,
            valuation_method=ValuationMethod.PREDICTIVE_MODEL,
            assessor_id=SYSTEM_ASSESSOR_ID,
            status=ValuationStatus.PREDICTED,
            notes=f"Predictive valuation generated using {selection.method} model",
            valuation_factors=fit.factors,
            confidence_score=confidence,
            predicted_change=fit.annual_change_rate * 100,
            seasonal_adjustment=seasonal,
            prediction_models={
                "method": selection.method,
                "algorithm": selection.algorithm,
                "dataPoints": selection.data_points,
                "fit": fit.factors.to_dict(),
            },
        )

    @staticmethod
    def prepare_history(historical: Sequence[PropertyValuation]) -> List[PropertyValuation]:
        """
        Oldest-first history, excluding earlier predictions.

        Predicted snapshots are outputs of this model, not observations.
        """
        observed = [
            v for v in historical
            if v.valuation_method != ValuationMethod.PREDICTIVE_MODEL
        ]
        return sorted(observed, key=lambda v: v.assessment_date)

    # =========================================================================
    # Model Selection
    # =========================================================================

    @staticmethod
    def select_model(valuations: Sequence[PropertyValuation]) -> ModelSelection:
        count = len(valuations)
        if count >= MIN_POINTS_TIME_SERIES:
            method = "time_series_analysis"
        elif count >= MIN_POINTS_LINEAR_TREND:
            method = "linear_trend"
        elif count == 2:
            method = "simple_extrapolation"
        else:
            method = "limited_data"
        return ModelSelection(method=method, algorithm=ALGORITHMS[method], data_points=count)

    def _fit(
        self,
        selection: ModelSelection,
        prop: Property,
        valuations: List[PropertyValuation],
        prediction_date: date,
    ) -> ModelFit:
        if selection.method == "time_series_analysis":
            return self._time_series(valuations, prediction_date)
        if selection.method == "linear_trend":
            return self._linear_trend(valuations, prediction_date)
        if selection.method == "simple_extrapolation":
            return self._simple_extrapolation(valuations, prediction_date)
        return self._limited_data(prop, valuations, prediction_date)

    # =========================================================================
    # Models
    # =========================================================================

    def _time_series(
        self,
        valuations: List[PropertyValuation],
        prediction_date: date,
    ) -> ModelFit:
        xs = [epoch_ms(v.assessment_date) for v in valuations]
        ys = [float(v.assessed_value) for v in valuations]

        try:
            slope, intercept = linear_regression(xs, ys)
        except StatisticsError:
            # Every snapshot on the same date: no trend to fit
            slope, intercept = 0.0, fmean(ys)

        fitted = [slope * x + intercept for x in xs]
        predicted = _bounded_value(slope * epoch_ms(prediction_date) + intercept)

        first_value = ys[0] if ys[0] > 0 else 1.0
        annual_change_rate = slope * MS_PER_YEAR / first_value

        residuals = tuple(
            (y - f) / y if y else 0.0
            for y, f in zip(ys, fitted)
        )
        mape = fmean(abs(r) for r in residuals)

        mean_y = fmean(ys)
        total_ss = sum((y - mean_y) ** 2 for y in ys)
        residual_ss = sum((y - f) ** 2 for y, f in zip(ys, fitted))
        if total_ss > 0:
            r2 = 1 - residual_ss / total_ss
        else:
            r2 = 1.0 if residual_ss == 0 else 0.0

        market_multiplier = self._mean_ratio(
            valuations, lambda v: v.market_value, DEFAULT_MARKET_VALUE_MULTIPLIER,
        )
        taxable_ratio = min(1.0, self._mean_ratio(valuations, lambda v: v.taxable_value, 1.0))

        return ModelFit(
            assessed_value=predicted,
            market_value=predicted * market_multiplier,
            taxable_value=predicted * taxable_ratio,
            annual_change_rate=annual_change_rate,
            factors=RegressionFactors(
                slope=slope,
                intercept=intercept,
                r2=r2,
                mape=mape,
                residuals=residuals,
                market_value_multiplier=market_multiplier,
                taxable_ratio=taxable_ratio,
            ),
        )

    def _linear_trend(
        self,
        valuations: List[PropertyValuation],
        prediction_date: date,
    ) -> ModelFit:
        rates = [
            rate
            for rate in (_annual_rate(prev, curr) for prev, curr in zip(valuations, valuations[1:]))
            if rate is not None
        ]

        annual_change_rate = fmean(rates) if rates else 0.0
        latest = valuations[-1]
        years_ahead = _years_between(latest.assessment_date, prediction_date)

        return ModelFit(
            assessed_value=_compound(latest.assessed_value, annual_change_rate, years_ahead),
            market_value=_compound(latest.market_value, annual_change_rate, years_ahead),
            taxable_value=_compound(latest.taxable_value, annual_change_rate, years_ahead),
            annual_change_rate=annual_change_rate,
            factors=TrendFactors(
                annual_rates=tuple(rates),
                average_annual_rate=annual_change_rate,
                years_to_prediction=years_ahead,
            ),
        )

    def _simple_extrapolation(
        self,
        valuations: List[PropertyValuation],
        prediction_date: date,
    ) -> ModelFit:
        older, newer = valuations[0], valuations[1]
        observed = _annual_rate(older, newer)
        annual_change_rate = observed if observed is not None else 0.0

        years_ahead = _years_between(newer.assessment_date, prediction_date)

        return ModelFit(
            assessed_value=_compound(newer.assessed_value, annual_change_rate, years_ahead),
            market_value=_compound(newer.market_value, annual_change_rate, years_ahead),
            taxable_value=_compound(newer.taxable_value, annual_change_rate, years_ahead),
            annual_change_rate=annual_change_rate,
            factors=ExtrapolationFactors(
                older_value=older.assessed_value,
                newer_value=newer.assessed_value,
                observed_change_rate=annual_change_rate,
                years_to_prediction=years_ahead,
            ),
        )

    def _limited_data(
        self,
        prop: Property,
        valuations: List[PropertyValuation],
        prediction_date: date,
    ) -> ModelFit:
        if valuations:
            latest = valuations[-1]
            assessed = float(latest.assessed_value)
            market = float(latest.market_value)
            taxable = float(latest.taxable_value)
            as_of = latest.assessment_date
        else:
            assessed = float(prop.last_assessed_value or 0)
            market = assessed * DEFAULT_MARKET_VALUE_MULTIPLIER
            taxable = assessed
            as_of = prop.last_assessed_date or prediction_date

        annual_change_rate = DEFAULT_GROWTH_RATES.get(prop.property_type, FALLBACK_GROWTH_RATE)
        years_ahead = _years_between(as_of, prediction_date)

        return ModelFit(
            assessed_value=_compound(assessed, annual_change_rate, years_ahead),
            market_value=_compound(market, annual_change_rate, years_ahead),
            taxable_value=_compound(taxable, annual_change_rate, years_ahead),
            annual_change_rate=annual_change_rate,
            factors=LimitedDataFactors(
                last_known_value=assessed,
                default_growth_rate=annual_change_rate,
                property_type=prop.property_type.value,
                years_to_prediction=years_ahead,
            ),
        )

    @staticmethod
    def _mean_ratio(valuations, numerator, default: float) -> float:
        ratios = [
            numerator(v) / v.assessed_value
            for v in valuations
            if v.assessed_value > 0
        ]
        if not ratios:
            return default
        ratio = fmean(ratios)
        return ratio if ratio > 0 else default

    # =========================================================================
    # Confidence
    # =========================================================================

    def confidence_score(
        self,
        valuations: Sequence[PropertyValuation],
        prediction_date: date,
    ) -> int:
        """
        Score (0-100) how well the history supports a prediction.

        - History volume:        10 per valuation, up to 30
        - History span:          half a point per month, up to 30
        - Extrapolation penalty: half a point per month ahead, up to 20
        - Consistency bonus:     up to 20 for steady period changes
        """
        count = len(valuations)
        score = float(min(count * HISTORY_POINTS_PER_VALUATION, HISTORY_POINTS_CAP))

        if count >= 2:
            span_months = _months_between(valuations[0].assessment_date, valuations[-1].assessment_date)
            score += min(span_months / 2, SPAN_POINTS_CAP)

        if count > 0:
            months_ahead = _months_between(valuations[-1].assessment_date, prediction_date)
            score -= min(max(0.0, months_ahead) * DISTANCE_PENALTY_PER_MONTH, DISTANCE_PENALTY_CAP)

        if count >= 3:
            score += self._consistency_bonus(valuations)

        return max(0, min(100, round_half_up(score)))

    @staticmethod
    def _consistency_bonus(valuations: Sequence[PropertyValuation]) -> float:
        changes = [
            (curr.assessed_value - prev.assessed_value) / prev.assessed_value
            for prev, curr in zip(valuations, valuations[1:])
            if prev.assessed_value > 0
        ]
        if not changes:
            return 0.0

        std_dev = pstdev(changes)
        if std_dev < CONSISTENT_STDDEV:
            return float(CONSISTENCY_POINTS_CAP)

        avg_change = fmean(changes)
        if avg_change == 0:
            return 0.0

        variation = abs(std_dev / avg_change)
        return max(0.0, min(float(CONSISTENCY_POINTS_CAP), CONSISTENCY_POINTS_CAP - variation * 100))

    # =========================================================================
    # Seasonality
    # =========================================================================

    @staticmethod
    def seasonal_adjustment(
        valuations: Sequence[PropertyValuation],
        prediction_date: date,
    ) -> float:
        """
        Monthly multiplier for the prediction month, normalised to mean 1.0.

        Months with no history take the overall mean. Below four
        valuations there is no adjustment.
        """
        if len(valuations) < MIN_POINTS_SEASONAL:
            return 1.0

        overall = fmean(v.assessed_value for v in valuations)
        if overall <= 0:
            return 1.0

        buckets: dict[int, list] = {}
        for v in valuations:
            buckets.setdefault(v.assessment_date.month, []).append(v.assessed_value)

        indices = [
            fmean(buckets[month]) if month in buckets else overall
            for month in range(1, 13)
        ]
        mean_index = fmean(indices)
        if mean_index <= 0:
            return 1.0

        return indices[prediction_date.month - 1] / mean_index
