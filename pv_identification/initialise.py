import copy
import logging
from typing import Dict, List, Union

import numpy as np
import pandas as pd
from dateutil.parser import ParserError

from .features import EMPTY_WINDOW_POLICIES
from .load_daily import load_daily_multiple_households, timeslot_index

logger = logging.getLogger(__name__)

# Columns of the smart meter sample that describe the time stamp rather than a household
METADATA_COLUMNS = ('date', 'time', 'year', 'month', 'mdate', 'week')


class DataInitialised:
    '''
    The readings and run preferences prepared by initialise(): the raw data, the household names, the distinct
    dates with their day of the week, the daily matrix of every household and the input_features dictionary.
    '''

    def __init__(self, data: pd.DataFrame, households: List, dates: pd.DatetimeIndex, weekdays: List[str],
                 daily: Dict, input_features: Dict):
        self.data = data
        self.households = households
        self.dates = dates
        self.weekdays = weekdays
        self.daily = daily
        self.input_features = input_features


# # ================================================================
# # Initialise the user preferences and pre-process the input data
# # ================================================================

def initialise(customersdatapath: Union[str, None] = None, raw_data: Union[pd.DataFrame, None] = None,
               num_obs: Union[int, None] = None, morning_start: Union[int, None] = None, afternoon_end: Union[int, None] = None,
               empty_window_policy: Union[str, None] = None, n_top_features: Union[int, None] = None,
               train_fraction: Union[float, None] = None, cv_folds: Union[int, None] = None,
               seed: Union[int, None] = None, core_usage: Union[int, None] = None,
               metadata_columns: Union[List[str], None] = None) -> DataInitialised:
    '''
    initialise(customersdatapath=None,raw_data=None,num_obs=None,morning_start=None,afternoon_end=None,empty_window_policy=None,n_top_features=None,train_fraction=None,cv_folds=None,seed=None,core_usage=None,metadata_columns=None)

    This function is to initialise the data and the input parameters required for the rest of the functions in this package.
    It requires either a path to a csv file or raw_data. The data has one row per time stamp, a 'date' column, optionally
    'time', 'year', 'month', 'mdate' and 'week' columns, and one column of smart meter readings per household.
    Other inputs are all optional; default values are used to fill in the gaps.
    '''

    # Read data
    if customersdatapath is not None:
        data: pd.DataFrame = pd.read_csv(customersdatapath)
    elif raw_data is not None:
        data = copy.deepcopy(raw_data)
    else:
        raise ValueError('Either customersdatapath or raw_data needs to be provided')

    if metadata_columns is None:
        metadata_columns = [column for column in METADATA_COLUMNS if column in data.columns]
    if 'date' not in data.columns:
        raise ValueError('Input data is not the correct format! It should have a "date" column and one column per household')

    # # ###### Pre-process the data ######
    # format date to pandas datetime format
    try:
        load_date = pd.to_datetime(data['date']).dt.normalize()
    except (ParserError, ValueError) as exc:
        raise ValueError('data.date should be a string that can be meaningfully changed to a date.') from exc

    households = [column for column in data.columns if column not in metadata_columns]
    if not households:
        raise ValueError('Input data has no household columns')

    # Number of readings per day, e.g. 48 for half-hourly data
    if num_obs is None:
        if 'time' in data.columns:
            num_obs = int(data['time'].nunique())
        else:
            num_obs = int(load_date.value_counts().max())

    timeslot = timeslot_index(data['time'], num_obs) if 'time' in data.columns else None

    daily = load_daily_multiple_households(data[households], load_date, num_obs, timeslot=timeslot, households=households)
    dates = pd.DatetimeIndex(next(iter(daily.values())).index)

    # Day of the week of every distinct date
    if 'week' in data.columns:
        weekdays = list(data['week'].groupby(load_date.to_numpy(), sort=False).first().reindex(dates))
    else:
        weekdays = list(dates.day_name())

    input_features: Dict[str, Union[str, int, float, None]] = {'num_obs': num_obs}

    # The PV-affected window, 06:00 to 19:00 (inclusive) by default
    input_features['morning_start'] = int(round(6 * num_obs / 24)) if morning_start is None else morning_start
    input_features['afternoon_end'] = int(round(19 * num_obs / 24)) + 1 if afternoon_end is None else afternoon_end

    if empty_window_policy is None:
        input_features['empty_window_policy'] = 'raise'
    elif empty_window_policy in EMPTY_WINDOW_POLICIES:
        input_features['empty_window_policy'] = empty_window_policy
    else:
        raise ValueError('empty_window_policy should be one of {}'.format(EMPTY_WINDOW_POLICIES))

    input_features['n_top_features'] = 12 if n_top_features is None else n_top_features
    input_features['train_fraction'] = 0.7 if train_fraction is None else train_fraction
    input_features['cv_folds'] = 10 if cv_folds is None else cv_folds
    input_features['seed'] = seed

    # number of processes parallel programming.
    input_features['core_usage'] = 1 if core_usage is None else core_usage

    if data[households].isna().to_numpy().any():
        logger.warning('The data has NaN values; days with missing readings are left out of the affected feature windows')

    missing_cells = int(sum(np.isnan(matrix.to_numpy()).sum() for matrix in daily.values()))
    logger.info('Initialised %d households over %d days (%d readings per day, %d missing cells)',
                len(households), len(dates), num_obs, missing_cells)

    return DataInitialised(data, households, dates, weekdays, daily, input_features)
