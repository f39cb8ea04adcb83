import logging
from typing import Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from .exceptions import DegenerateInputError

logger = logging.getLogger(__name__)

TIE_POLICIES = ('raise', 'max')


def features_importance(feature: Sequence[float], label: Sequence, ties: str = 'raise') -> float:
    '''
    features_importance(feature, label, ties='raise')

    Computes the significance of one feature for separating the two classes in label, as the p-value of the
    Kruskal-Wallis rank-sum test. The lower the p-value, the more discriminative the feature. Missing feature
    values are dropped together with their label.

    When every value is tied the test is undefined: ties='raise' raises DegenerateInputError and ties='max'
    reports the no-difference p-value of 1.0.
    '''
    if ties not in TIE_POLICIES:
        raise ValueError('ties should be one of {}, got {!r}'.format(TIE_POLICIES, ties))

    frame = pd.DataFrame({'feature': np.asarray(feature, dtype=float), 'type': np.asarray(label)}).dropna()

    groups = [group['feature'].to_numpy() for _, group in frame.groupby('type', sort=True)]
    if len(groups) != 2:
        raise DegenerateInputError('Expected observations from exactly two classes, got {}'.format(len(groups)))

    if frame['feature'].nunique() == 1:
        if ties == 'max':
            return 1.0
        raise DegenerateInputError('All {} values are identical, the rank-sum test is undefined'.format(len(frame)))

    p_value = stats.kruskal(*groups).pvalue
    return float(min(max(p_value, 0.0), 1.0))


def rank_features(table: pd.DataFrame, label_column: str = 'cls', ties: str = 'raise') -> pd.Series:
    '''
    rank_features(table, label_column='cls', ties='raise')

    Applies features_importance to every feature column of a feature table. It returns the p-values indexed by
    feature name, in ascending order; features with equal p-values keep their original column order.
    '''
    labels = table[label_column]
    p_values = pd.Series({column: features_importance(table[column], labels, ties=ties)
                          for column in table.columns if column != label_column}, name='p_value', dtype=float)
    ranking = p_values.sort_values(kind='mergesort')

    if len(ranking):
        logger.info('Most significant feature: %s (p-value %.3g)', ranking.index[0], ranking.iloc[0])

    return ranking


def select_features(table: pd.DataFrame, ranking: pd.Series, n_top_features: Union[int, None] = 12,
                    label_column: str = 'cls') -> pd.DataFrame:
    '''
    select_features(table, ranking, n_top_features=12, label_column='cls')

    Keeps the n_top_features most significant feature columns of table (in ranking order) and the label column.
    '''
    selected = list(ranking.index[:n_top_features])
    if label_column in table.columns:
        selected.append(label_column)
    return table[selected]
