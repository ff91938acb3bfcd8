"""
OXASL_MFREE - Magnitude correction for bolus arrival time differences

Copyright (c) 2010-2020 University of Oxford
"""
import math

import numpy as np

from oxasl_mfree.errors import DomainError, ShapeMismatchError
from oxasl_mfree.utils import check_dt, check_finite

def correct_magnitude(mag, batd, t1, dt=None, fa=0.0):
    """
    Correct magnitude for the difference in BAT between the AIF and the tissue

    Label arriving later in the tissue than in the artery has undergone additional
    T1 decay. For Look-Locker readouts (``fa > 0``) it has also been
    attenuated by the readout pulses applied in the meantime.

    :param mag: Magnitude, shape (V,)
    :param batd: BAT difference tissue - AIF (s), shape (V,)
    :param t1: T1 of blood (s)
    :param dt: Time sampling interval (s), required when ``fa > 0``
    :param fa: Readout flip angle (degrees), 0 for no flip angle correction

    :return: Corrected magnitude, shape (V,)
    """
    mag = np.atleast_1d(np.asarray(mag, dtype=np.float64))
    batd = np.atleast_1d(np.asarray(batd, dtype=np.float64))
    if mag.shape != batd.shape or mag.ndim != 1:
        raise ShapeMismatchError("Magnitude and BAT difference must be vectors of the same length: %s vs %s" % (mag.shape, batd.shape))
    t1 = float(t1)
    if not t1 > 0:
        raise DomainError("T1 must be > 0: %f" % t1)
    fa = float(fa)
    if not 0 <= fa < 180:
        raise DomainError("Flip angle must be in the range [0, 180) degrees: %f" % fa)

    corrected = mag * np.exp(batd / t1)
    if fa > 0:
        if dt is None:
            raise DomainError("Time sampling interval is required for flip angle correction")
        dt = check_dt(dt)
        # The 1e-3 deals with the case where batd is an integer multiple of dt
        npulses = np.floor((batd - 1e-3) / dt)
        corrected *= 1 / np.power(math.cos(fa / 180 * math.pi), npulses)

    return check_finite(corrected, "corrected magnitude")
