"""
Tests for magnitude correction
"""
import math

import pytest
import numpy as np

from oxasl_mfree import correct_magnitude, DomainError, ShapeMismatchError, NonFiniteResultError

def test_t1_decay():
    np.testing.assert_allclose(correct_magnitude([1.0], [0.5], 1.0), [math.exp(0.5)])

def test_zero_batd():
    """ No BAT difference gives no correction """
    mag = np.array([0.3, 1.2, 5.0])
    np.testing.assert_allclose(correct_magnitude(mag, np.zeros(3), 1.6), mag)

def test_negative_batd():
    np.testing.assert_allclose(correct_magnitude([2.0], [-1.6], 1.6), [2.0 / math.e])

def test_reversible():
    """ Correcting with -batd undoes the correction when there is no flip angle """
    mag = np.array([0.1, 0.5, 0.9])
    batd = np.array([0.3, -0.7, 1.1])
    corr = correct_magnitude(mag, batd, 1.3)
    np.testing.assert_allclose(correct_magnitude(corr, -batd, 1.3), mag)

def test_flip_angle():
    """ One readout pulse between arrivals at 60 degrees halves the signal """
    corr = correct_magnitude([1.0], [1.0], 1e12, dt=0.5, fa=60)
    np.testing.assert_allclose(corr, [2.0])

def test_flip_angle_pulses():
    """ Number of pulses is the number of whole dt intervals strictly within batd """
    fa = 30
    factor = 1 / math.cos(math.radians(fa))
    corr = correct_magnitude([1.0, 1.0, 1.0], [0.25, 0.75, 1.25], float("inf"), dt=0.25, fa=fa)
    np.testing.assert_allclose(corr, [1.0, factor**2, factor**4])

def test_infinite_t1():
    np.testing.assert_allclose(correct_magnitude([1.5], [0.8], float("inf")), [1.5])

def test_shape_mismatch():
    with pytest.raises(ShapeMismatchError):
        correct_magnitude([1.0, 2.0], [0.5], 1.6)

def test_bad_t1():
    for t1 in (0, -1.6):
        with pytest.raises(DomainError):
            correct_magnitude([1.0], [0.5], t1)

def test_bad_fa():
    for fa in (-10, 180, 270):
        with pytest.raises(DomainError):
            correct_magnitude([1.0], [0.5], 1.6, dt=0.3, fa=fa)

def test_fa_needs_dt():
    with pytest.raises(DomainError):
        correct_magnitude([1.0], [0.5], 1.6, fa=30)

def test_overflow():
    with pytest.raises(NonFiniteResultError):
        correct_magnitude([1.0], [1e6], 1.0)
