import itertools
import logging
from collections import namedtuple
from concurrent.futures import ProcessPoolExecutor
from typing import Dict, List, Sequence, Union

import multiprocess as mp
import numpy as np
import pandas as pd
import tqdm

from .exceptions import InsufficientDataError, ShapeError

logger = logging.getLogger(__name__)

# Interior window boundaries (10:00, 14:00 and 17:00) on the half-hourly grid, rescaled for other resolutions
REFERENCE_NUM_OBS = 48
WINDOW_BOUNDARIES = (21, 29, 35)
BOUNDARY_LABELS = ('10:00:00', '14:00:00', '17:00:00')

# PV-affected window from 06:00 to 19:00 on the half-hourly grid
DEFAULT_MORNING_START = 12
DEFAULT_AFTERNOON_END = 39

EMPTY_WINDOW_POLICIES = ('raise', 'nan')

PV_LABEL = 0
NON_PV_LABEL = 1

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
WEEKEND_DAYS = (5, 6)

Window = namedtuple('Window', ['name', 'start', 'end', 'start_label', 'end_label'])
FeatureDefinition = namedtuple('FeatureDefinition', ['name', 'day_subset', 'window', 'statistic'])

DAY_SUBSETS = (('all', ''), ('weekdays', "weekdays' "), ('weekends', "weekends' "))

# (statistic, wording) in the order the features are reported
WINDOW_STATISTICS = {
    'all': (('mean', 'average load'), ('max', 'maximum load'), ('min', 'minimum load'),
            ('std', 'standard deviations'), ('sum', 'total load')),
    'morning': (('max', 'peak load'), ('mean', 'average load'), ('std', 'standard deviations'), ('min', 'minimum load')),
    'noon': (('max', 'peak load'), ('mean', 'average load'), ('std', 'standard deviations'), ('min', 'minimum load')),
    'afternoon': (('max', 'peak load'), ('mean', 'average load'), ('std', 'standard deviations'), ('min', 'minimum load')),
    'evening': (('max', 'peak load'), ('mean', 'average load'), ('std', 'standard deviations'), ('min', 'minimum load')),
}

ROW_STATISTICS = {
    'mean': lambda block: block.mean(axis=1),
    'max': lambda block: block.max(axis=1),
    'min': lambda block: block.min(axis=1),
    'std': lambda block: block.std(axis=1, ddof=1),
    'sum': lambda block: block.sum(axis=1),
}


# # ================================================================
# # Feature definitions
# # ================================================================

def slot_label(slot: int, num_obs: int) -> str:
    seconds = int(round(slot * 86400 / num_obs))
    return '{:02d}:{:02d}:{:02d}'.format(seconds // 3600, seconds % 3600 // 60, seconds % 60)


def feature_windows(morning_start: int = DEFAULT_MORNING_START, afternoon_end: int = DEFAULT_AFTERNOON_END,
                    num_obs: int = REFERENCE_NUM_OBS) -> List[Window]:
    '''
    feature_windows(morning_start, afternoon_end, num_obs)

    Returns the five half-open timeslot windows (all, morning, noon, afternoon and evening) used by the features.
    The interior boundaries are rescaled to num_obs and clamped into [morning_start, afternoon_end], so a narrow
    PV-affected window may leave some of them with zero width.
    '''
    if not 0 <= morning_start < afternoon_end <= num_obs:
        raise ValueError('Expected 0 <= morning_start < afternoon_end <= num_obs, got morning_start={}, '
                         'afternoon_end={}, num_obs={}'.format(morning_start, afternoon_end, num_obs))

    inner = [min(max(int(round(b * num_obs / REFERENCE_NUM_OBS)), morning_start), afternoon_end)
             for b in WINDOW_BOUNDARIES]
    start_label = slot_label(morning_start, num_obs)
    # afternoon_end is exclusive; the label names the last reading inside the window
    end_label = slot_label(afternoon_end - 1, num_obs)

    return [Window('all', morning_start, afternoon_end, start_label, end_label),
            Window('morning', morning_start, inner[0], start_label, BOUNDARY_LABELS[0]),
            Window('noon', inner[0], inner[1], BOUNDARY_LABELS[0], BOUNDARY_LABELS[1]),
            Window('afternoon', inner[1], inner[2], BOUNDARY_LABELS[1], BOUNDARY_LABELS[2]),
            Window('evening', inner[2], afternoon_end, BOUNDARY_LABELS[2], end_label)]


def feature_definitions(morning_start: int = DEFAULT_MORNING_START, afternoon_end: int = DEFAULT_AFTERNOON_END,
                        num_obs: int = REFERENCE_NUM_OBS) -> List[FeatureDefinition]:
    '''
    feature_definitions(morning_start, afternoon_end, num_obs)

    The 63 features as data: every day subset (all days, weekdays, weekends) crossed with every window and the
    statistics reported for that window. The list order is the order of the feature vector.
    '''
    definitions = []
    for (subset, subset_word), window in itertools.product(DAY_SUBSETS, feature_windows(morning_start, afternoon_end, num_obs)):
        window_word = '' if window.name == 'all' else window.name + ' '
        for statistic, statistic_word in WINDOW_STATISTICS[window.name]:
            name = 'Mean of the {}daily {}{} (from {} to {})'.format(subset_word, window_word, statistic_word,
                                                                     window.start_label, window.end_label)
            definitions.append(FeatureDefinition(name, subset, window, statistic))
    return definitions


def feature_names(morning_start: int = DEFAULT_MORNING_START, afternoon_end: int = DEFAULT_AFTERNOON_END,
                  num_obs: int = REFERENCE_NUM_OBS) -> List[str]:
    return [definition.name for definition in feature_definitions(morning_start, afternoon_end, num_obs)]


# # ================================================================
# # Day-of-week handling
# # ================================================================

def weekend_mask(weekdays: Sequence) -> np.ndarray:
    '''
    weekend_mask(weekdays)

    Flags Saturdays and Sundays. weekdays holds day names ('Monday', 'sat', ...) or day numbers with Monday=0.
    '''
    day_numbers = []
    for day in weekdays:
        if isinstance(day, str):
            day_name = day.strip().lower()
            matches = [i for i, name in enumerate(WEEKDAY_NAMES) if len(day_name) >= 3 and name.startswith(day_name)]
            if len(matches) != 1:
                raise ValueError('Unknown day of the week: {!r}'.format(day))
            day_numbers.append(matches[0])
        elif isinstance(day, (bool, np.bool_)):
            raise ValueError('Unknown day of the week: {!r}'.format(day))
        elif isinstance(day, (int, np.integer)) and 0 <= day <= 6:
            day_numbers.append(int(day))
        else:
            raise ValueError('Unknown day of the week: {!r}'.format(day))
    return np.isin(np.asarray(day_numbers, dtype=int), WEEKEND_DAYS)


def weekdays_from_index(daily: pd.DataFrame) -> List[str]:
    try:
        if pd.api.types.is_numeric_dtype(daily.index):
            raise TypeError('numeric index')
        return list(pd.DatetimeIndex(pd.to_datetime(daily.index)).day_name())
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError('weekdays should be given when the daily matrix is not indexed by dates') from exc


# # ================================================================
# # Feature extraction
# # ================================================================

def _undefined(empty_window_policy: str, message: str) -> float:
    if empty_window_policy == 'raise':
        raise InsufficientDataError(message)
    return np.nan


def features_load(loadsample: pd.DataFrame, weekdays: Union[Sequence, None] = None,
                  morning_start: int = DEFAULT_MORNING_START, afternoon_end: int = DEFAULT_AFTERNOON_END,
                  empty_window_policy: str = 'raise') -> pd.Series:
    '''
    features_load(loadsample, weekdays=None, morning_start=12, afternoon_end=39, empty_window_policy='raise')

    This function computes the 63 load-shape features of one household from its daily matrix (days x timeslots,
    see load_daily). weekdays gives the day of the week of every row; when it is None the day names are taken
    from the dates in the index of loadsample.

    For every day subset and window, a day is used only when all of its readings inside that window are present.
    The statistic is computed per day over the window columns (the standard deviation with n-1 degrees of
    freedom) and then averaged over the eligible days.

    A statistic without eligible days, or a window too narrow for it, is undefined. With
    empty_window_policy='raise' it raises InsufficientDataError and no vector is returned; with 'nan' the feature
    is reported as NaN.

    It returns a pandas Series indexed by the feature names.
    '''
    if empty_window_policy not in EMPTY_WINDOW_POLICIES:
        raise ValueError('empty_window_policy should be one of {}, got {!r}'.format(EMPTY_WINDOW_POLICIES, empty_window_policy))

    x = np.asarray(loadsample, dtype=float)
    if x.ndim != 2:
        raise ShapeError('loadsample should be a two-dimensional days x timeslots matrix')
    num_obs = x.shape[1]

    if weekdays is None:
        weekdays = weekdays_from_index(loadsample)
    if len(weekdays) != x.shape[0]:
        raise ShapeError('weekdays has {} entries but loadsample has {} days'.format(len(weekdays), x.shape[0]))

    weekend = weekend_mask(weekdays)
    subsets = {'all': np.ones(len(weekend), dtype=bool), 'weekdays': ~weekend, 'weekends': weekend}

    definitions = feature_definitions(morning_start, afternoon_end, num_obs)
    values = []
    for (subset, window), group in itertools.groupby(definitions, key=lambda d: (d.day_subset, d.window)):
        block = x[subsets[subset], window.start:window.end]
        eligible = block[~np.isnan(block).any(axis=1)]
        width = window.end - window.start

        if len(block) > len(eligible):
            logger.debug('%d of %d %s days excluded from the %s window because of missing readings',
                         len(block) - len(eligible), len(block), subset, window.name)

        for definition in group:
            if width == 0 or len(eligible) == 0:
                value = _undefined(empty_window_policy, 'No eligible {} days in the {} window [{}, {}) for "{}"'.format(
                    subset, window.name, window.start, window.end, definition.name))
            elif definition.statistic == 'std' and width < 2:
                value = _undefined(empty_window_policy, 'The {} window [{}, {}) is too narrow for a standard deviation'.format(
                    window.name, window.start, window.end))
            else:
                value = float(ROW_STATISTICS[definition.statistic](eligible).mean())
            values.append(value)

    return pd.Series(values, index=[d.name for d in definitions], name='features')


# # ================================================================
# # Features of multiple households
# # ================================================================

def pool_executor_parallel(function_name, repeat_iter, input_features):
    '''
    pool_executor_parallel(function_name,repeat_iter,input_features)

    This function is used to parallelised the feature extraction for each household
    '''
    with ProcessPoolExecutor(max_workers=input_features['core_usage'], mp_context=mp.get_context('fork')) as executor:
        results = list(executor.map(function_name, repeat_iter, itertools.repeat(input_features)))
    return results


def features_load_single_household(household_item, input_features: Dict) -> pd.Series:
    '''
    features_load_single_household((household, daily, weekdays), input_features)

    Computes the features of one household; household_item bundles its name, daily matrix and day names.
    '''
    household, daily, weekdays = household_item
    features = features_load(daily, weekdays,
                             morning_start=input_features.get('morning_start', DEFAULT_MORNING_START),
                             afternoon_end=input_features.get('afternoon_end', DEFAULT_AFTERNOON_END),
                             empty_window_policy=input_features.get('empty_window_policy', 'raise'))
    features.name = household
    return features


def features_load_multiple_households(daily_profiles: Dict, weekdays: Union[Sequence, Dict, None] = None,
                                      input_features: Union[Dict, None] = None, progress: bool = False) -> pd.DataFrame:
    '''
    features_load_multiple_households(daily_profiles, weekdays=None, input_features=None, progress=False)

    Computes the features of every household in daily_profiles (household -> daily matrix). weekdays is either
    one sequence shared by all households, a dictionary household -> sequence, or None to use the dates of each
    matrix. With input_features['core_usage'] greater than one the households are processed in a process pool.

    It returns a dataframe with one row per household and one column per feature.
    '''
    input_features = dict(input_features or {})
    input_features.setdefault('core_usage', 1)

    if isinstance(weekdays, dict):
        items = [(household, daily, weekdays[household]) for household, daily in daily_profiles.items()]
    else:
        items = [(household, daily, weekdays) for household, daily in daily_profiles.items()]

    if input_features['core_usage'] > 1:
        results = pool_executor_parallel(features_load_single_household, items, input_features)
    else:
        results = [features_load_single_household(item, input_features)
                   for item in tqdm.tqdm(items, desc='Features', disable=not progress)]

    logger.info('Computed %d features for %d households', len(results[0]) if results else 0, len(results))

    if not results:
        return pd.DataFrame(columns=feature_names(input_features.get('morning_start', DEFAULT_MORNING_START),
                                                  input_features.get('afternoon_end', DEFAULT_AFTERNOON_END)))
    return pd.DataFrame(results)


def feature_table(features_pv: pd.DataFrame, features_npv: pd.DataFrame, label_column: str = 'cls') -> pd.DataFrame:
    '''
    feature_table(features_pv, features_npv, label_column='cls')

    Stacks the features of PV and non-PV consumers and appends the class label (PV=0, non-PV=1).
    '''
    if list(features_pv.columns) != list(features_npv.columns):
        raise ValueError('features_pv and features_npv should have the same feature columns')

    table = pd.concat([features_pv, features_npv], axis=0)
    table[label_column] = [PV_LABEL] * len(features_pv) + [NON_PV_LABEL] * len(features_npv)
    return table
