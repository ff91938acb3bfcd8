"""
OXASL_MFREE - SVD deconvolution of ASL data

The tissue signal is modelled as the convolution of the arterial input
function (AIF) with a residue function scaled by CBF. Deconvolution is done
voxelwise by inverting the (scaled) AIF convolution matrix using a truncated
singular value decomposition.

Three variants are provided:

 - ``svd_deconv`` - Standard (causal) convolution matrix with a fixed
   truncation threshold
 - ``svd_deconv_circular`` - Circular convolution matrix of the zero-padded
   AIF with a fixed truncation threshold. This is insensitive to delays
   between the AIF and the tissue curve
 - ``svd_deconv_wu`` - Circular convolution matrix with the truncation chosen
   adaptively using an oscillation index (Wu et al, MRM 2003 50:164-174)

``deconv`` uses the last of these and splits the result into a magnitude
and a normalised residue function.

Copyright (c) 2010-2020 University of Oxford
"""
import math

import numpy as np
import scipy.linalg

from oxasl_mfree.convmtx import convmtx, convmtx_circular
from oxasl_mfree.errors import SingularError, NonFiniteResultError, DomainError
from oxasl_mfree.utils import voxel_matrix, check_same_shape, check_dt, check_fraction, check_finite, report_progress

# Singular values below this fraction of the largest are discarded
TRUNCFAC = 0.2

# Target oscillation index for the adaptive method
OI_THRESH = 0.1

def npad(nti):
    """
    :return: Number of zeros used to pad time series of length ``nti`` for circular deconvolution
    """
    return int(math.floor(nti * 1.2))

def oscillation_index(resid, norm):
    """
    Oscillation index of a residue function

    This is the summed absolute second difference normalised by the peak
    value and the ``norm`` factor (normally the number of time points)
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        return (1.0 / (norm * np.max(resid))) * np.sum(np.abs(resid[2:] - 2*resid[1:-1] + resid[:-2]))

def _svd(aifconv, voxel):
    if not np.any(aifconv):
        raise SingularError("AIF is identically zero", voxel)
    try:
        u, s, vt = scipy.linalg.svd(aifconv)
    except np.linalg.LinAlgError as exc:
        raise SingularError("SVD did not converge: %s" % exc, voxel)
    if not np.all(np.isfinite(s)):
        raise SingularError("SVD returned non-finite singular values", voxel)
    return u, s, vt.T

def _inverse(s):
    # Exactly zero singular values cannot be inverted - treat them as truncated
    inv = np.zeros(len(s))
    inv[s > 0] = 1 / s[s > 0]
    return inv

def _prepare(data, aif, dt):
    data = voxel_matrix(data, "data")
    aif = voxel_matrix(aif, "aif")
    check_same_shape(data, aif)
    return data, aif, check_dt(dt)

def _truncated_deconv(data, aif, dt, matrix_fn, nextra, truncfac, progress_cb):
    """
    Voxelwise deconvolution with a fixed singular value truncation threshold

    :return: Residue matrix including any padding time points
    """
    truncfac = check_fraction(truncfac, "Truncation factor")
    nti, nvox = data.shape
    ntot = nti + nextra

    residue = np.zeros((ntot, nvox))
    aif_padded = np.zeros(ntot)
    data_padded = np.zeros(ntot)
    report_progress(progress_cb, 0, nvox)
    for vox in range(nvox):
        aif_padded[:nti] = aif[:, vox]
        data_padded[:nti] = data[:, vox]
        aifconv = dt * matrix_fn(aif_padded)
        u, s, v = _svd(aifconv, vox)

        # Largest singular value is always retained
        dinv = _inverse(s)
        dinv[1:][s[1:] < truncfac * s[0]] = 0

        residue[:, vox] = v.dot(dinv * u.T.dot(data_padded))
        report_progress(progress_cb, vox+1, nvox)

    return residue

def svd_deconv(data, aif, dt, truncfac=TRUNCFAC, progress_cb=None):
    """
    SVD deconvolution using a standard convolution matrix

    :param data: Tissue curves, shape (T, V) or (T,)
    :param aif: AIF for each voxel, same shape as ``data``
    :param dt: Time sampling interval (s)
    :param truncfac: Singular values smaller than this fraction of the largest are zeroed
    :param progress_cb: Optional callable taking (voxels done, total voxels)

    :return: Residue functions, shape (T, V)
    """
    data, aif, dt = _prepare(data, aif, dt)
    return _truncated_deconv(data, aif, dt, convmtx, 0, truncfac, progress_cb)

def svd_deconv_circular(data, aif, dt, truncfac=TRUNCFAC, progress_cb=None):
    """
    SVD deconvolution using a circular convolution matrix

    Data and AIF are zero padded to avoid wrap-around effects. Only the
    residue at the original time points is returned.

    :param data: Tissue curves, shape (T, V) or (T,)
    :param aif: AIF for each voxel, same shape as ``data``
    :param dt: Time sampling interval (s)
    :param truncfac: Singular values smaller than this fraction of the largest are zeroed
    :param progress_cb: Optional callable taking (voxels done, total voxels)

    :return: Residue functions, shape (T, V)
    """
    data, aif, dt = _prepare(data, aif, dt)
    nti = data.shape[0]
    residue = _truncated_deconv(data, aif, dt, convmtx_circular, npad(nti), truncfac, progress_cb)
    return residue[:nti]

def svd_deconv_wu(data, aif, dt, oi_thresh=OI_THRESH, progress_cb=None):
    """
    Circular SVD deconvolution with an oscillation index threshold

    Starting with all singular values, the smallest are removed one at a time
    until the oscillation index of the residue is no greater than ``oi_thresh``
    or only the largest singular value remains.

    The initial oscillation index is normalised by the number of input time
    points but later values by the padded length. This is deliberate and
    matches the published behaviour of the method.

    :param data: Tissue curves, shape (T, V) or (T,)
    :param aif: AIF for each voxel, same shape as ``data``
    :param dt: Time sampling interval (s)
    :param oi_thresh: Target oscillation index
    :param progress_cb: Optional callable taking (voxels done, total voxels)

    :return: Residue functions for padded time series, shape (T+P, V)
             where P = floor(1.2*T)
    """
    data, aif, dt = _prepare(data, aif, dt)
    oi_thresh = float(oi_thresh)
    if not oi_thresh >= 0:
        raise DomainError("Oscillation index threshold must be >= 0: %f" % oi_thresh)

    nti, nvox = data.shape
    ntot = nti + npad(nti)

    residue = np.zeros((ntot, nvox))
    aif_padded = np.zeros(ntot)
    data_padded = np.zeros(ntot)
    report_progress(progress_cb, 0, nvox)
    for vox in range(nvox):
        aif_padded[:nti] = aif[:, vox]
        data_padded[:nti] = data[:, vox]
        aifconv = dt * convmtx_circular(aif_padded)
        u, s, v = _svd(aifconv, vox)
        dinv = _inverse(s)
        proj = u.T.dot(data_padded)

        resid = v.dot(dinv * proj)
        oi = oscillation_index(resid, nti)

        idx = ntot - 1
        while oi > oi_thresh and idx > 0:
            dinv[idx] = 0
            resid = v.dot(dinv * proj)
            oi = oscillation_index(resid, ntot)
            idx -= 1

        residue[:, vox] = resid
        report_progress(progress_cb, vox+1, nvox)

    return residue

def deconv(data, aif, dt, oi_thresh=OI_THRESH, progress_cb=None):
    """
    Deconvolve data and separate the magnitude and residue function

    :param data: Tissue curves, shape (T, V) or (T,)
    :param aif: AIF for each voxel, same shape as ``data``
    :param dt: Time sampling interval (s)

    :return: Tuple of magnitude (V,) and residue normalised to a peak of 1 (T+P, V)
    """
    resid = svd_deconv_wu(data, aif, dt, oi_thresh=oi_thresh, progress_cb=progress_cb)
    mag = np.max(resid, axis=0)
    zero = np.nonzero(mag == 0)[0]
    if len(zero) > 0:
        raise NonFiniteResultError("Residue function has zero magnitude - cannot normalise", voxels=zero)
    resid /= mag
    check_finite(mag, "magnitude")
    check_finite(resid, "residue function")
    return mag, resid
