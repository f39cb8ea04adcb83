from typing import Dict, Union


class PVIdentificationError(ValueError):
    '''
    Base class of every error raised by the identification pipeline.
    '''


class ShapeError(PVIdentificationError):
    '''
    The raw readings of a date cannot be placed unambiguously in a daily matrix.
    '''


class InsufficientDataError(PVIdentificationError):
    '''
    A feature window has no eligible day (or too few columns) for a day subset.
    '''


class DegenerateInputError(PVIdentificationError):
    '''
    The rank-sum test is undefined for the given groups or values.
    '''


class ProjectionError(PVIdentificationError):
    '''
    The principal components cannot be computed for the given training table.
    '''


class TrainingError(PVIdentificationError):
    '''
    One or more classifiers failed to fit or predict.

    errors maps the name of each failed classifier to the original exception and
    partial_results holds the test accuracy of the classifiers that succeeded.
    '''

    def __init__(self, message: str, errors: Union[Dict[str, Exception], None] = None,
                 partial_results: Union[Dict[str, float], None] = None):
        super().__init__(message)
        self.errors = dict(errors or {})
        self.partial_results = dict(partial_results or {})

    @property
    def classifier(self) -> Union[str, None]:
        return next(iter(self.errors), None)
