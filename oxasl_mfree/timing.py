"""
OXASL_MFREE - Bolus arrival time estimation

Copyright (c) 2010-2020 University of Oxford
"""
import numpy as np

from oxasl_mfree.convmtx import convmtx
from oxasl_mfree.errors import ShapeMismatchError
from oxasl_mfree.utils import voxel_matrix, check_dt, check_fraction

# Gaussian-like smoothing kernel used before edge detection
ONSET_KERNEL = [0.006, 0.061, 0.242, 0.383, 0.242, 0.061, 0.006]

def estimate_bat_difference(resid, dt):
    """
    Estimate the BAT difference between tissue and AIF from the residue function

    The delay is given by the position of the residue peak. Since the residue comes
    from a circular deconvolution, peaks in the second half correspond to
    negative delays.

    :param resid: Residue functions, shape (N, V) or (N,)
    :param dt: Time sampling interval (s)

    :return: BAT difference for each voxel (s), shape (V,)
    """
    resid = voxel_matrix(resid, "residue", min_rows=1)
    dt = check_dt(dt)
    ntpts = resid.shape[0]

    # 1-based index of peak
    peak = np.argmax(resid, axis=0) + 1
    peak[peak > ntpts // 2] -= ntpts
    return dt * (peak - 1)

def estimate_onset(curves, dt, gradient_threshold=0.2):
    """
    Estimate the time of onset of curves using edge detection

    Each curve is smoothed and the onset is the first time point where the
    forward difference exceeds ``gradient_threshold`` times its maximum.

    :param curves: Curves, shape (T, V) or (T,)
    :param dt: Time sampling interval (s)
    :param gradient_threshold: Fraction of the maximum gradient which identifies the edge

    :return: Onset time of each curve (s), shape (V,)
    """
    curves = voxel_matrix(curves, "curves", min_rows=2)
    dt = check_dt(dt)
    gradient_threshold = check_fraction(gradient_threshold, "Gradient threshold", allow_zero=False)
    ntpts = curves.shape[0]

    kernel = np.zeros(ntpts)
    nkern = min(ntpts, len(ONSET_KERNEL))
    kernel[:nkern] = ONSET_KERNEL[:nkern]

    smoothed = convmtx(kernel).dot(curves)
    dgrad = smoothed[1:] - smoothed[:-1]
    gthresh = gradient_threshold * np.max(dgrad, axis=0)

    above = dgrad > gthresh
    # If the threshold is never exceeded the onset is the last time point
    onset = np.where(np.any(above, axis=0), np.argmax(above, axis=0), ntpts - 1)
    return onset * dt

def onset_difference(data, aif, dt, gradient_threshold=0.2):
    """
    Estimate the BAT difference between tissue and AIF from the onset of each curve

    :return: Tuple of BAT difference, tissue onset and AIF onset (all (V,), s)
    """
    data = voxel_matrix(data, "data", min_rows=2)
    aif = voxel_matrix(aif, "aif", min_rows=2)
    if data.shape != aif.shape:
        raise ShapeMismatchError("Data and AIF must have the same shape: %s vs %s" % (data.shape, aif.shape))
    bat_tiss = estimate_onset(data, dt, gradient_threshold)
    bat_aif = estimate_onset(aif, dt, gradient_threshold)
    return bat_tiss - bat_aif, bat_tiss, bat_aif
