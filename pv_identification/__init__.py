from .exceptions import (PVIdentificationError, ShapeError, InsufficientDataError, DegenerateInputError,
                         ProjectionError, TrainingError)
from .load_daily import timeslot_index, load_daily, load_daily_multiple_households
from .features import (feature_windows, feature_definitions, feature_names, weekend_mask, features_load,
                       features_load_single_household, features_load_multiple_households, feature_table,
                       PV_LABEL, NON_PV_LABEL)
from .importance import features_importance, rank_features, select_features
from .classify import (NaiveBayes, SupportVectorMachine, GeneralizedLinearModel, LinearDiscriminantAnalysis, Perceptron,
                       BinomialGLMClassifier, CLASSIFIERS, CLASSIFIER_NAMES, project_principal_components,
                       split_train_test, classify_pv_npv, evaluate)
from .initialise import DataInitialised, initialise
