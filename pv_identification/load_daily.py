import logging
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import tqdm

from .exceptions import ShapeError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440


# # ================================================================
# # Timeslot helpers
# # ================================================================

def timeslot_index(times: Sequence, num_obs: int) -> np.ndarray:
    '''
    timeslot_index(times, num_obs)

    Maps clock times ('HH:MM:SS' strings, datetime.time, pandas Timestamps or Timedeltas) to 0-based
    timeslot indices on a grid of num_obs slots per day. 00:00:00 is slot 0 and, on a half-hourly grid,
    23:30:00 is slot 47.
    '''
    if num_obs <= 0:
        raise ValueError('num_obs should be a positive integer, got {}'.format(num_obs))

    times = pd.Series(times)
    if pd.api.types.is_datetime64_any_dtype(times):
        minutes = times.dt.hour * 60 + times.dt.minute + times.dt.second / 60
    else:
        try:
            deltas = pd.to_timedelta(times.astype(str))
        except ValueError as exc:
            raise ValueError('times should be clock times in the form HH:MM:SS') from exc
        minutes = deltas.dt.total_seconds() / 60

    slots = np.floor(minutes.to_numpy(dtype=float) * num_obs / MINUTES_PER_DAY).astype(int)
    return slots


def _daily_positions(load_date: Sequence, num_obs: int,
                     timeslot: Union[Sequence[int], None] = None) -> Tuple[pd.Index, np.ndarray, np.ndarray]:
    '''
    Returns the distinct dates (first-seen order) and, for every reading, its row and column in the daily matrix.
    '''
    if num_obs <= 0:
        raise ValueError('num_obs should be a positive integer, got {}'.format(num_obs))

    load_date = pd.Index(load_date)
    dates = pd.Index(pd.unique(load_date), name='date')
    rows = dates.get_indexer(load_date)

    if timeslot is None:
        # Positional assignment is only unambiguous when every date carries a full day of readings
        counts = np.bincount(rows, minlength=len(dates))
        if (counts != num_obs).any():
            bad = dates[counts != num_obs]
            raise ShapeError('Every date needs exactly {} readings when no timeslot is given; {} date(s) differ, '
                             'e.g. {} with {} readings'.format(num_obs, len(bad), bad[0], counts[dates.get_loc(bad[0])]))
        cols = pd.Series(rows).groupby(rows).cumcount().to_numpy()
        return dates, rows, cols

    cols = np.asarray(timeslot)
    if len(cols) != len(rows):
        raise ShapeError('timeslot has {} entries but there are {} readings'.format(len(cols), len(rows)))
    if not np.issubdtype(cols.dtype, np.integer):
        raise ShapeError('timeslot should hold integer indices')
    if ((cols < 0) | (cols >= num_obs)).any():
        raise ShapeError('timeslot indices should lie in [0, {})'.format(num_obs))

    keys = rows.astype(np.int64) * num_obs + cols
    if len(np.unique(keys)) != len(keys):
        duplicated = pd.Index(keys).duplicated()
        first = np.flatnonzero(duplicated)[0]
        raise ShapeError('More than one reading for date {} at timeslot {}'.format(load_date[first], cols[first]))

    return dates, rows, cols


# # ================================================================
# # Daily load profiles
# # ================================================================

def load_daily(load: Sequence[float], load_date: Sequence, num_obs: int,
               timeslot: Union[Sequence[int], None] = None) -> pd.DataFrame:
    '''
    load_daily(load, load_date, num_obs, timeslot=None)

    Reshapes the flat load readings of one household into a daily matrix with one row per distinct date
    (in first-seen order) and num_obs timeslot columns.

    When timeslot is given each reading is placed at its (date, timeslot) cell; cells without a reading are
    left missing (NaN) and a duplicated (date, timeslot) pair raises ShapeError. Without timeslot the readings
    of each date are placed in the order encountered, which requires exactly num_obs readings per date
    (missing values are then carried as NaN readings).
    '''
    values = np.asarray(load, dtype=float)
    if len(values) != len(load_date):
        raise ShapeError('load has {} readings but load_date has {} entries'.format(len(values), len(load_date)))

    dates, rows, cols = _daily_positions(load_date, num_obs, timeslot)

    daily = np.full((len(dates), num_obs), np.nan)
    daily[rows, cols] = values

    return pd.DataFrame(daily, index=dates, columns=pd.RangeIndex(num_obs, name='timeslot'))


def load_daily_multiple_households(data: pd.DataFrame, load_date: Sequence, num_obs: int,
                                   timeslot: Union[Sequence[int], None] = None,
                                   households: Union[List, None] = None, progress: bool = False) -> Dict:
    '''
    load_daily_multiple_households(data, load_date, num_obs, timeslot=None, households=None, progress=False)

    Applies load_daily to every household column of data. All households share the same timestamp grid, so the
    date/timeslot positions are validated once and reused. It returns a dictionary with keys being the household
    names and values being their daily matrix.
    '''
    if households is None:
        households = list(data.columns)
    if len(data) != len(load_date):
        raise ShapeError('data has {} rows but load_date has {} entries'.format(len(data), len(load_date)))

    dates, rows, cols = _daily_positions(load_date, num_obs, timeslot)
    columns = pd.RangeIndex(num_obs, name='timeslot')

    daily_profiles = {}
    for household in tqdm.tqdm(households, desc='Reshaping', disable=not progress):
        daily = np.full((len(dates), num_obs), np.nan)
        daily[rows, cols] = pd.to_numeric(data[household], errors='coerce').to_numpy(dtype=float)
        daily_profiles[household] = pd.DataFrame(daily, index=dates, columns=columns)

    logger.info('Reshaped %d households into %d days of %d timeslots', len(daily_profiles), len(dates), num_obs)

    return daily_profiles
