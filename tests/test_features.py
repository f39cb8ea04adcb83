import numpy as np
import pandas as pd
import pytest

from pv_identification import (InsufficientDataError, ShapeError, feature_definitions, feature_names, feature_table,
                               feature_windows, features_load, features_load_multiple_households, load_daily,
                               weekend_mask)


def half_hourly(rows):
    return pd.DataFrame(np.asarray(rows, dtype=float))


def feature(features, name):
    return features.loc[name]


def test_sixty_three_unique_names():
    names = feature_names()

    assert len(names) == 63
    assert len(set(names)) == 63
    assert names[0] == 'Mean of the daily average load (from 06:00:00 to 19:00:00)'
    assert names[4] == 'Mean of the daily total load (from 06:00:00 to 19:00:00)'
    assert names[9] == 'Mean of the daily noon peak load (from 10:00:00 to 14:00:00)'
    assert names[21] == "Mean of the weekdays' daily average load (from 06:00:00 to 19:00:00)"
    assert names[-1] == "Mean of the weekends' daily evening minimum load (from 17:00:00 to 19:00:00)"


def test_definitions_as_data():
    definitions = feature_definitions()

    assert [d.day_subset for d in definitions].count('weekends') == 21
    assert sum(d.statistic == 'sum' for d in definitions) == 3
    assert all(d.window.name == 'all' for d in definitions if d.statistic == 'sum')


def test_windows_on_half_hourly_grid():
    windows = {w.name: (w.start, w.end) for w in feature_windows(12, 39, 48)}

    assert windows == {'all': (12, 39), 'morning': (12, 21), 'noon': (21, 29), 'afternoon': (29, 35), 'evening': (35, 39)}


def test_windows_scale_with_resolution():
    windows = {w.name: (w.start, w.end) for w in feature_windows(24, 76, 96)}

    assert windows['noon'] == (42, 58)
    assert windows['afternoon'] == (58, 70)
    assert windows['evening'] == (70, 76)


def test_invalid_window_bounds():
    with pytest.raises(ValueError):
        feature_windows(38, 12, 48)
    with pytest.raises(ValueError):
        feature_windows(12, 60, 48)


def test_weekend_mask():
    np.testing.assert_array_equal(weekend_mask(['Sat', 'sunday', 'Monday', 0, 6]), [True, True, False, False, True])
    with pytest.raises(ValueError):
        weekend_mask(['Funday'])
    with pytest.raises(ValueError):
        weekend_mask([True])
    with pytest.raises(ValueError):
        weekend_mask([np.bool_(False)])


def test_default_window_includes_the_last_named_reading():
    day = np.zeros(48)
    day[38] = 100

    features = features_load(half_hourly([day, day]), ['Monday', 'Saturday'])

    assert feature(features, 'Mean of the daily maximum load (from 06:00:00 to 19:00:00)') == 100
    assert feature(features, 'Mean of the daily evening peak load (from 17:00:00 to 19:00:00)') == 100
    assert feature(features, 'Mean of the daily total load (from 06:00:00 to 19:00:00)') == 100


def test_collapsed_windows_two_days():
    daily = half_hourly([[1, 2, 3, 4], [5, 6, 7, 8]])

    features = features_load(daily, ['Monday', 'Saturday'], morning_start=1, afternoon_end=3, empty_window_policy='nan')

    assert len(features) == 63
    # mean(mean(2, 3), mean(6, 7))
    assert features.iloc[0] == 4.5
    assert features.iloc[1] == pytest.approx(np.mean([3, 7]))
    assert features.iloc[4] == pytest.approx(np.mean([5, 13]))
    # the noon window [2, 2) is empty on a four-slot day
    assert np.isnan(feature(features, 'Mean of the daily noon average load (from 10:00:00 to 14:00:00)'))


def test_empty_window_raises_by_default():
    daily = half_hourly([[1, 2, 3, 4], [5, 6, 7, 8]])

    with pytest.raises(InsufficientDataError):
        features_load(daily, ['Monday', 'Saturday'], morning_start=1, afternoon_end=3)


def test_one_day_one_slot_window():
    daily = half_hourly([[1, 2, 3, 4]])

    features = features_load(daily, ['Monday'], morning_start=1, afternoon_end=3, empty_window_policy='nan')

    morning = 'Mean of the daily morning {} (from 06:00:00 to 10:00:00)'
    assert features.loc[morning.format('average load')] == 2
    assert features.loc[morning.format('peak load')] == 2
    assert features.loc[morning.format('minimum load')] == 2
    assert np.isnan(features.loc[morning.format('standard deviations')])


def test_days_with_missing_readings_are_excluded_per_window():
    day1 = np.arange(48, dtype=float)
    day2 = np.arange(48, dtype=float) + 100
    day2[22] = np.nan

    features = features_load(half_hourly([day1, day2]), ['Monday', 'Tuesday'], empty_window_policy='nan')

    # day 2 misses a noon reading: left out of the whole and the noon windows only
    assert feature(features, 'Mean of the daily average load (from 06:00:00 to 19:00:00)') == pytest.approx(25)
    assert feature(features, 'Mean of the daily noon average load (from 10:00:00 to 14:00:00)') == pytest.approx(24.5)
    assert feature(features, 'Mean of the daily morning average load (from 06:00:00 to 10:00:00)') == pytest.approx(66)
    assert feature(features, 'Mean of the daily morning standard deviations (from 06:00:00 to 10:00:00)') == pytest.approx(np.sqrt(7.5))


def test_weekday_and_weekend_subsets():
    daily = half_hourly([np.full(48, 1.0), np.full(48, 3.0), np.full(48, 10.0)])

    features = features_load(daily, ['Monday', 'Tuesday', 'Saturday'])

    assert feature(features, "Mean of the weekdays' daily average load (from 06:00:00 to 19:00:00)") == 2
    assert feature(features, "Mean of the weekends' daily average load (from 06:00:00 to 19:00:00)") == 10
    assert feature(features, "Mean of the weekends' daily total load (from 06:00:00 to 19:00:00)") == 270
    assert feature(features, 'Mean of the daily standard deviations (from 06:00:00 to 19:00:00)') == 0


def test_no_weekend_days_raises():
    daily = half_hourly([np.ones(48), np.ones(48)])

    with pytest.raises(InsufficientDataError):
        features_load(daily, ['Monday', 'Tuesday'])


def test_weekdays_from_dates():
    load = np.tile(np.arange(48, dtype=float), 2)
    daily = load_daily(load, pd.to_datetime(['2020-03-06'] * 48 + ['2020-03-07'] * 48), num_obs=48)

    features = features_load(daily)

    assert feature(features, "Mean of the weekends' daily average load (from 06:00:00 to 19:00:00)") == pytest.approx(25)


def test_weekdays_length_mismatch():
    with pytest.raises(ShapeError):
        features_load(half_hourly([np.ones(48)]), ['Monday', 'Saturday'])


def test_deterministic_and_idempotent(readings):
    frame, _ = readings
    daily = load_daily(frame['H0'], frame['date'], num_obs=48)
    weekdays = list(pd.to_datetime(daily.index).day_name())

    first = features_load(daily, weekdays)
    second = features_load(daily, weekdays)
    pd.testing.assert_series_equal(first, second)

    flattened = daily.to_numpy().ravel()
    again = load_daily(flattened, np.repeat(daily.index, 48), num_obs=48)
    pd.testing.assert_series_equal(features_load(again, weekdays), first)


def test_multiple_households_and_table(readings):
    frame, households = readings
    daily = {h: load_daily(frame[h], frame['date'], num_obs=48) for h in ['H0', 'H1', 'H20']}

    features = features_load_multiple_households(daily)

    assert list(features.index) == ['H0', 'H1', 'H20']
    assert features.shape == (3, 63)
    pd.testing.assert_series_equal(features.loc['H0'], features_load(daily['H0']), check_names=False)

    table = feature_table(features.loc[['H0', 'H1']], features.loc[['H20']])
    assert list(table['cls']) == [0, 0, 1]
    assert table.shape == (3, 64)


def test_multiple_households_in_a_process_pool(readings):
    frame, _ = readings
    daily = {h: load_daily(frame[h], frame['date'], num_obs=48) for h in ['H0', 'H15']}

    sequential = features_load_multiple_households(daily)
    parallel = features_load_multiple_households(daily, input_features={'core_usage': 2})

    pd.testing.assert_frame_equal(sequential, parallel)
