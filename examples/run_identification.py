# # ==================================================================================================
# # Identify the consumers that operate behind-the-meter PV using only their smart meter readings.
# #
# # The readings file has one row per time stamp ('date', 'time', 'week', ... and one column per household).
# # The household file has a 'household' column and a boolean 'has_pv' column.
# #
# # Below is an example of the main functionalities in this package
# # ==================================================================================================

import argparse
import logging

import pandas as pd
from more_itertools import take

import pv_identification as pvi

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
    datefmt="%H:%M:%S",
)

parser = argparse.ArgumentParser(description='Benchmark linear classifiers for identifying PV consumers')
parser.add_argument('readings', help='csv file of the smart meter readings')
parser.add_argument('households', help='csv file with the columns "household" and "has_pv"')
parser.add_argument('--max-households', type=int, default=None, help='only use the first n households (to speed up the calculations)')
parser.add_argument('--core-usage', type=int, default=1)
parser.add_argument('--seed', type=int, default=123)
args = parser.parse_args()

# # ==================================================
# # Initialize variables
# # ==================================================
data_initialised = pvi.initialise(customersdatapath=args.readings, core_usage=args.core_usage, seed=args.seed,
                                  empty_window_policy='nan')
input_features = data_initialised.input_features

daily = data_initialised.daily
if args.max_households is not None:
    daily = dict(take(args.max_households, daily.items()))

has_pv = pd.read_csv(args.households).set_index('household')['has_pv'].astype(bool)
has_pv.index = has_pv.index.astype(str)
daily_pv = {i: daily[i] for i in daily if has_pv.get(str(i), False)}
daily_npv = {i: daily[i] for i in daily if not has_pv.get(str(i), False)}

# # ==================================================
# # Features of PV and non-PV consumers
# # ==================================================
feature_pv = pvi.features_load_multiple_households(daily_pv, data_initialised.weekdays, input_features)
feature_npv = pvi.features_load_multiple_households(daily_npv, data_initialised.weekdays, input_features)
table = pvi.feature_table(feature_pv, feature_npv).dropna(axis=1)

# # ==================================================
# # Significance of each feature, and the most significant ones
# # ==================================================
ranking = pvi.rank_features(table, ties='max')
print(ranking.head(input_features['n_top_features']).to_string())

selected = pvi.select_features(table, ranking, input_features['n_top_features'])

# # ==================================================
# # Classify PV and non-PV consumers
# # ==================================================
data_train, data_test = pvi.split_train_test(selected, input_features['train_fraction'], seed=input_features['seed'])

try:
    results = pvi.classify_pv_npv(data_train, data_test, cv_folds=input_features['cv_folds'],
                                  seed=input_features['seed'], core_usage=input_features['core_usage'])
except pvi.TrainingError as exc:
    print('Error!!! {}'.format(exc))
    results = exc.partial_results

for name, accuracy in results.items():
    print('{:<30s} {:.3f}'.format(name, accuracy))
