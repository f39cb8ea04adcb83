import numpy as np
import pandas as pd
import pytest


def make_readings(n_households=30, n_pv=10, n_days=14, num_obs=48, seed=7):
    '''
    Wide smart meter readings: one row per time stamp, metadata columns and one column per household. The first
    n_pv households see their midday demand offset by a bell-shaped PV generation.
    '''
    rng = np.random.default_rng(seed)
    dates = pd.date_range('2020-03-02', periods=n_days, freq='D')
    times = pd.timedelta_range(0, periods=num_obs, freq=pd.Timedelta(days=1) / num_obs)

    slots = np.arange(num_obs)
    pv_shape = np.clip(np.sin(np.pi * (slots - 12) / 26), 0, None) * (slots >= 12) * (slots < 38)

    frame = pd.DataFrame({
        'date': np.repeat(dates.strftime('%Y-%m-%d'), num_obs),
        'time': np.tile([str(t).split(' ')[-1] for t in times], n_days),
        'week': np.repeat(dates.day_name(), num_obs),
    })
    for i in range(n_households):
        load = 0.4 + 0.3 * rng.random(n_days * num_obs)
        if i < n_pv:
            load = load - 1.2 * np.tile(pv_shape, n_days)
        frame['H{}'.format(i)] = load

    households = pd.DataFrame({'household': ['H{}'.format(i) for i in range(n_households)],
                               'has_pv': [i < n_pv for i in range(n_households)]})
    return frame, households


@pytest.fixture
def readings():
    return make_readings()


def make_separable_table(n_rows, seed, label_column='cls'):
    '''
    Five features; only the first one carries the class, with a wide gap between the classes.
    '''
    rng = np.random.default_rng(seed)
    labels = np.array([0, 1] * (n_rows // 2))
    table = pd.DataFrame(rng.normal(0, 0.1, size=(n_rows, 5)), columns=['f{}'.format(i) for i in range(5)])
    table['f0'] = np.where(labels == 0, -1, 1) * (3 + rng.random(n_rows))
    table[label_column] = labels
    return table


@pytest.fixture
def separable_tables():
    return make_separable_table(40, seed=1), make_separable_table(20, seed=2)
