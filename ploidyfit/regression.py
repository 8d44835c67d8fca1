import numpy as np
import statsmodels.api as sm


# Degrees tried when the polynomial degree of a GC-content regression is
# not configured
AUTOMATIC_GC_DEGREES = (3, 4)


class PolynomialFit(object):
    """ Robust polynomial regression of read counts on a covariate.

    The covariate is rescaled by its maximum absolute value so that high
    degree polynomials remain well conditioned, without shifting it, which
    keeps the model without intercept a fit through the origin.
    """
    def __init__(self, degree, intercept=True):
        if degree < 1:
            raise ValueError('polynomial degree must be at least 1, got {}'.format(degree))
        self.degree = degree
        self.intercept = bool(intercept)
        self.scale = 1.
        self.results = None

    def design(self, x):
        x = np.asarray(x, dtype=float) / self.scale
        X = np.vander(x, self.degree + 1, increasing=True)
        if not self.intercept:
            X = X[:, 1:]
        return X

    def fit(self, x, y):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)

        num_coefficients = self.degree + int(self.intercept)
        if x.shape[0] <= num_coefficients:
            raise ValueError('too few windows ({}) to fit a polynomial of degree {}'.format(
                x.shape[0], self.degree))

        self.scale = np.abs(x).max()
        if self.scale == 0:
            self.scale = 1.

        model = sm.RLM(y, self.design(x), M=sm.robust.norms.HuberT())
        self.results = model.fit()

        return self

    @property
    def residual_scale(self):
        return self.results.scale

    def predict(self, x):
        return self.design(x).dot(np.asarray(self.results.params))


def fit_polynomial(x, y, degree, intercept):
    """ Fit a robust polynomial, trying several degrees if degree is None.

    Args:
        x (numpy.array): covariate
        y (numpy.array): response
        degree (int): polynomial degree, None for automatic
        intercept (int): include an intercept term

    Returns:
        PolynomialFit: the fit with the smallest robust residual scale

    """

    if degree is not None:
        return PolynomialFit(degree, intercept).fit(x, y)

    best = None
    for candidate_degree in AUTOMATIC_GC_DEGREES:
        model = PolynomialFit(candidate_degree, intercept).fit(x, y)
        if best is None or model.residual_scale < best.residual_scale:
            best = model

    return best
