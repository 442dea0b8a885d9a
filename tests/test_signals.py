import numpy as np
import pandas as pd
import pytest

from tradebot.engine import (
    InvalidParameter,
    build_positions,
    compute_ema,
    compute_macd,
    generate_price_series,
    raw_signals,
)


def test_price_series_is_deterministic():
    first = generate_price_series(seed=42, length=200, start_price=20_000.0)
    second = generate_price_series(seed=42, length=200, start_price=20_000.0)

    assert first.to_numpy().tobytes() == second.to_numpy().tobytes()
    pd.testing.assert_series_equal(first, second)
    assert not first.equals(generate_price_series(seed=43, length=200, start_price=20_000.0))


def test_price_series_shape_and_timestamps():
    prices = generate_price_series(seed=1, length=24, start_price=100.0, drift_scale=0.02)

    assert len(prices) == 24
    assert prices.iloc[0] == 100.0
    assert prices.index[0] == pd.Timestamp("2024-01-01")
    assert (prices.index.to_series().diff().dropna() == pd.Timedelta(hours=1)).all()
    assert prices.index.is_monotonic_increasing


def test_single_bar_series_is_just_the_start_price():
    prices = generate_price_series(length=1, start_price=50.0)
    assert prices.tolist() == [50.0]


def test_zero_drift_gives_a_flat_series():
    prices = generate_price_series(length=10, start_price=50.0, drift_scale=0.0)
    assert (prices == 50.0).all()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"length": 0},
        {"length": -5},
        {"start_price": 0.0},
        {"start_price": -1.0},
        {"freq": "not-a-freq"},
        {"seed": -1},
        {"seed": 1.5},
    ],
)
def test_invalid_loader_parameters(kwargs):
    with pytest.raises(InvalidParameter):
        generate_price_series(**kwargs)


def test_ema_follows_recursive_definition():
    prices = generate_price_series(seed=5, length=80, start_price=100.0)
    period = 8
    alpha = 2.0 / (period + 1.0)

    ema = compute_ema(prices, period)

    assert ema.iloc[0] == prices.iloc[0]
    for i in range(1, len(prices)):
        expected = prices.iloc[i] * alpha + ema.iloc[i - 1] * (1.0 - alpha)
        assert ema.iloc[i] == pytest.approx(expected, rel=1e-12)


def test_macd_and_signal_are_fully_defined():
    prices = generate_price_series(seed=9, length=100)

    indicators = compute_macd(prices, fast_period=8, slow_period=21, signal_period=5)

    assert list(indicators.columns) == ["fast_ema", "slow_ema", "macd", "signal"]
    assert len(indicators) == len(prices)
    assert indicators.notna().all().all()
    np.testing.assert_allclose(indicators["macd"], indicators["fast_ema"] - indicators["slow_ema"])
    assert indicators["signal"].iloc[0] == indicators["macd"].iloc[0]
    pd.testing.assert_series_equal(indicators["signal"], compute_ema(indicators["macd"], 5), check_names=False)


def test_non_positive_periods_are_rejected():
    prices = generate_price_series(length=10)
    with pytest.raises(InvalidParameter):
        compute_macd(prices, fast_period=0)
    with pytest.raises(InvalidParameter):
        compute_ema(prices, -3)


def test_positions_lag_raw_signal_by_one_bar():
    index = pd.RangeIndex(5)
    indicators = pd.DataFrame(
        {"macd": [1.0, -1.0, 0.5, 0.5, 2.0], "signal": [0.0, 0.0, 0.5, 1.0, 1.0]},
        index=index,
    )

    assert raw_signals(indicators).tolist() == [1, -1, 0, -1, 1]
    assert build_positions(indicators).tolist() == [0, 1, -1, 0, -1]


def test_positions_never_depend_on_same_or_future_bars():
    prices = generate_price_series(seed=11, length=150)
    baseline = build_positions(compute_macd(prices))

    for i in (0, 1, 40, 75, 149):
        shocked = prices.copy()
        shocked.iloc[i] = shocked.iloc[i] * 1.25
        positions = build_positions(compute_macd(shocked))
        assert positions.iloc[: i + 1].tolist() == baseline.iloc[: i + 1].tolist()


def test_positions_are_in_allowed_set():
    positions = build_positions(compute_macd(generate_price_series(seed=2, length=300)))
    assert set(positions.unique()) <= {-1, 0, 1}
    assert positions.iloc[0] == 0
