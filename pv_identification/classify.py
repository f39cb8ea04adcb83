import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Tuple, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.decomposition import PCA
from sklearn.discriminant_analysis import LinearDiscriminantAnalysis as LDA
from sklearn.model_selection import GridSearchCV, StratifiedKFold, cross_val_score
from sklearn.naive_bayes import GaussianNB
from sklearn.neural_network import MLPClassifier
from sklearn.svm import SVC
from threadpoolctl import threadpool_limits

from .exceptions import ProjectionError, TrainingError

logger = logging.getLogger(__name__)


# # ================================================================
# # Binomial generalized linear model
# # ================================================================

class BinomialGLMClassifier(ClassifierMixin, BaseEstimator):
    '''
    Logistic regression fitted as a binomial GLM with statsmodels, wrapped as a scikit-learn classifier so that it
    can be cross-validated like the other learners.
    '''

    def __init__(self, threshold: float = 0.5):
        self.threshold = threshold

    def _exog(self, X):
        return sm.add_constant(np.asarray(X, dtype=float), has_constant='add')

    def fit(self, X, y):
        self.classes_, y_index = np.unique(np.asarray(y), return_inverse=True)
        if len(self.classes_) != 2:
            raise ValueError('BinomialGLMClassifier needs exactly two classes, got {}'.format(len(self.classes_)))

        self.result_ = sm.GLM(y_index.astype(float), self._exog(X), family=sm.families.Binomial()).fit()
        return self

    def predict_proba(self, X):
        p = np.asarray(self.result_.predict(self._exog(X)))
        return np.column_stack([1 - p, p])

    def predict(self, X):
        return self.classes_[(self.predict_proba(X)[:, 1] > self.threshold).astype(int)]


# # ================================================================
# # Linear classifiers
# # ================================================================

class LinearClassifier:
    '''
    A classifier family of the benchmark. fit() selects the hyperparameters in param_grid by k-fold cross-validation
    on the training data and refits the best estimator on all of it; families without hyperparameters are only
    cross-validated for the reported cv_accuracy_.
    '''

    name = None
    param_grid = {}

    def __init__(self, random_state: Union[int, None] = None):
        self.random_state = random_state

    def estimator(self):
        raise NotImplementedError

    def fit(self, features, labels, cv_folds: int = 10):
        folds = StratifiedKFold(n_splits=cv_folds, shuffle=True, random_state=self.random_state)

        if self.param_grid:
            search = GridSearchCV(self.estimator(), self.param_grid, cv=folds, scoring='accuracy', error_score='raise')
            search.fit(features, labels)
            self.model_ = search.best_estimator_
            self.best_params_ = search.best_params_
            self.cv_accuracy_ = search.best_score_
        else:
            self.cv_accuracy_ = cross_val_score(self.estimator(), features, labels, cv=folds, scoring='accuracy',
                                                error_score='raise').mean()
            self.model_ = self.estimator().fit(features, labels)
            self.best_params_ = {}
        return self

    def predict(self, features):
        return self.model_.predict(features)


class NaiveBayes(LinearClassifier):
    name = 'Naive Bayes'
    param_grid = {'var_smoothing': np.logspace(-9, -3, 4)}

    def estimator(self):
        return GaussianNB()


class SupportVectorMachine(LinearClassifier):
    name = 'Support Vector Machine'
    param_grid = {'C': [0.25, 0.5, 1.0]}

    def estimator(self):
        return SVC(kernel='linear', random_state=self.random_state)


class GeneralizedLinearModel(LinearClassifier):
    name = 'Generalized Linear Model'

    def estimator(self):
        return BinomialGLMClassifier()


class LinearDiscriminantAnalysis(LinearClassifier):
    name = 'Linear Discriminant Analysis'

    def estimator(self):
        return LDA()


class Perceptron(LinearClassifier):
    # A multi-layer perceptron with a single hidden unit
    name = 'Perceptron'
    param_grid = {'alpha': [1e-4, 1e-2, 1e-1]}

    def estimator(self):
        return MLPClassifier(hidden_layer_sizes=(1,), solver='lbfgs', max_iter=2000, random_state=self.random_state)


CLASSIFIERS = (NaiveBayes, SupportVectorMachine, GeneralizedLinearModel, LinearDiscriminantAnalysis, Perceptron)
CLASSIFIER_NAMES = tuple(classifier.name for classifier in CLASSIFIERS)


# # ================================================================
# # Principal components
# # ================================================================

def project_principal_components(data_train: pd.DataFrame, data_test: pd.DataFrame,
                                 n_components: int = 2) -> Tuple[pd.DataFrame, pd.DataFrame, np.ndarray]:
    '''
    project_principal_components(data_train, data_test, n_components=2)

    Fits a PCA (mean-centred, not scaled) on the training features and projects the training and the testing
    features on its first n_components components. It returns both projections (columns PC1, PC2, ...) and the
    share of variance explained by each kept component.
    '''
    if list(data_train.columns) != list(data_test.columns):
        raise ProjectionError('Training and testing tables should have the same feature columns')

    x_train = data_train.to_numpy(dtype=float)
    x_test = data_test.to_numpy(dtype=float)

    if x_train.shape[0] < n_components or x_train.shape[1] < n_components:
        raise ProjectionError('At least {} training rows and {} feature columns are needed, got a {} x {} table'.format(
            n_components, n_components, *x_train.shape))
    if not (np.isfinite(x_train).all() and np.isfinite(x_test).all()):
        raise ProjectionError('The feature tables contain missing or infinite values')
    if not (np.ptp(x_train, axis=0) > 0).any():
        raise ProjectionError('The training features have zero variance')

    res_pca = PCA(n_components=n_components, svd_solver='full').fit(x_train)
    columns = ['PC{}'.format(i + 1) for i in range(n_components)]

    train_pca = pd.DataFrame(res_pca.transform(x_train), index=data_train.index, columns=columns)
    test_pca = pd.DataFrame(res_pca.transform(x_test), index=data_test.index, columns=columns)

    return train_pca, test_pca, res_pca.explained_variance_ratio_


# # ================================================================
# # Train/test preparation
# # ================================================================

def split_train_test(table: pd.DataFrame, train_fraction: float = 0.7, seed: Union[int, None] = None,
                     label_column: str = 'cls') -> Tuple[pd.DataFrame, pd.DataFrame]:
    '''
    split_train_test(table, train_fraction=0.7, seed=None, label_column='cls')

    Splits a feature table into training and testing tables, taking floor(train_fraction * n) randomly chosen rows
    of each class for training.
    '''
    if not 0 < train_fraction < 1:
        raise ValueError('train_fraction should lie in (0, 1), got {}'.format(train_fraction))

    rng = np.random.default_rng(seed)
    train_rows, test_rows = [], []
    for _, group in table.groupby(label_column, sort=True):
        order = rng.permutation(len(group))
        n_train = int(np.floor(train_fraction * len(group)))
        train_rows.append(group.iloc[order[:n_train]])
        test_rows.append(group.iloc[order[n_train:]])

    return pd.concat(train_rows), pd.concat(test_rows)


# # ================================================================
# # Benchmark
# # ================================================================

def _train_single_classifier(classifier: LinearClassifier, feature_train: pd.DataFrame, feature_test: pd.DataFrame,
                             cv_folds: int, label_column: str):
    x_train = feature_train.drop(columns=label_column).to_numpy()
    x_test = feature_test.drop(columns=label_column).to_numpy()

    try:
        classifier.fit(x_train, feature_train[label_column].to_numpy(), cv_folds)
        predicted = classifier.predict(x_test)
    except Exception as exc:
        return classifier.name, exc

    accuracy = float(np.sum(predicted == feature_test[label_column].to_numpy()) / len(feature_test))
    logger.info('%s: cross-validated accuracy %.3f, test accuracy %.3f', classifier.name, classifier.cv_accuracy_, accuracy)
    return classifier.name, accuracy


def classify_pv_npv(data_train: pd.DataFrame, data_test: pd.DataFrame, cv_folds: int = 10,
                    seed: Union[int, None] = None, label_column: str = 'cls', core_usage: int = 1) -> Dict[str, float]:
    '''
    classify_pv_npv(data_train, data_test, cv_folds=10, seed=None, label_column='cls', core_usage=1)

    This function identifies PV and non-PV consumers using a set of linear classifiers, i.e., Naive Bayes,
    Support Vector Machine, Generalized Linear Model, Linear Discriminant Analysis and Perceptron.
    The training and testing tables hold one consumer per row, the feature columns and the class label column.
    The features are projected on the first two principal components of the training data, then every
    classifier is trained on the shuffled training projection (cv_folds-fold cross-validation for its
    hyperparameters) and evaluated on the testing projection.

    It returns a dictionary with keys being the classifier names (in the order above) and values being the
    testing accuracy. seed makes the shuffling and the cross-validation folds reproducible. When a classifier
    fails, the others are still evaluated and a TrainingError holding their results is raised.
    '''
    if len(data_test) == 0:
        raise ValueError('data_test should contain at least one consumer')

    features = [column for column in data_train.columns if column != label_column]
    train_pca, test_pca, explained = project_principal_components(data_train[features], data_test[features])
    logger.info('The first two principal components explain %.1f%% of the variance', 100 * explained.sum())

    feature_train = train_pca.assign(**{label_column: data_train[label_column].to_numpy()})
    feature_test = test_pca.assign(**{label_column: data_test[label_column].to_numpy()})

    rng = np.random.default_rng(seed)
    feature_train = feature_train.iloc[rng.permutation(len(feature_train))]
    feature_test = feature_test.iloc[rng.permutation(len(feature_test))]

    random_state = None if seed is None else int(seed)
    classifiers = [classifier(random_state=random_state) for classifier in CLASSIFIERS]

    # Learner warnings are captured for this call only and reported through the log
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        if core_usage > 1:
            with threadpool_limits(limits=1), ThreadPoolExecutor(max_workers=core_usage) as executor:
                outcomes = list(executor.map(lambda c: _train_single_classifier(c, feature_train, feature_test, cv_folds, label_column),
                                             classifiers))
        else:
            outcomes = [_train_single_classifier(c, feature_train, feature_test, cv_folds, label_column) for c in classifiers]

    for message in sorted({str(w.message) for w in caught}):
        logger.warning('Warning raised while training: %s', message)

    results = {name: outcome for name, outcome in outcomes if not isinstance(outcome, Exception)}
    errors = {name: outcome for name, outcome in outcomes if isinstance(outcome, Exception)}
    if errors:
        raise TrainingError('Training failed for: {}'.format(', '.join(errors)), errors=errors, partial_results=results)

    return results


def evaluate(train_table: pd.DataFrame, test_table: pd.DataFrame, cv_folds: int = 10, seed: Union[int, None] = None,
             label_column: str = 'cls', core_usage: int = 1) -> Dict[str, float]:
    return classify_pv_npv(train_table, test_table, cv_folds=cv_folds, seed=seed, label_column=label_column,
                           core_usage=core_usage)
