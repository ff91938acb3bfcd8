"""
OXASL_MFREE - Wild bootstrap estimate of CBF precision

The residuals of the deconvolution model fit are resampled by flipping their
signs with a Rademacher (+1/-1) vector. This preserves any time-dependence
of the noise variance. The deconvolution is repeated for each resampled data
set and the standard deviation of the magnitude estimates is returned.

Copyright (c) 2010-2020 University of Oxford
"""
import numpy as np

from oxasl_mfree.convmtx import convmtx_circular
from oxasl_mfree.deconv import svd_deconv_wu
from oxasl_mfree.errors import DomainError, ShapeMismatchError
from oxasl_mfree.utils import voxel_matrix, check_same_shape, check_dt, check_finite, report_progress

def get_rng(rng=None):
    """
    Get a random number generator

    :param rng: ``numpy.random.Generator`` which is returned unchanged, an integer
                seed or None for an unseeded generator
    """
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)

def rademacher(ntpts, rng):
    """
    Sample a vector from the Rademacher distribution

    Each element is -1 if a uniform sample in [0, 1) is above 0.5, otherwise +1
    """
    radevec = np.ones(ntpts)
    radevec[rng.random(ntpts) > 0.5] = -1.0
    return radevec

def model_fit(aif, residue, dt, mag=None):
    """
    Model prediction of the tissue curves from a circular deconvolution

    :param aif: AIF, shape (T, V)
    :param residue: Residue functions, shape (T+P, V), padded as returned by ``svd_deconv_wu``
    :param dt: Time sampling interval (s)
    :param mag: If given, magnitude (V,) by which a normalised residue is scaled

    :return: Model fit at the original time points, shape (T, V)
    """
    ntpts, nvox = aif.shape
    ntot = residue.shape[0]
    if residue.ndim != 2 or residue.shape[1] != nvox or ntot < ntpts:
        raise ShapeMismatchError("Residue shape %s is not compatible with AIF shape %s" % (residue.shape, aif.shape))

    if mag is not None:
        residue = residue * mag

    modelfit = np.zeros((ntpts, nvox))
    aif_padded = np.zeros(ntot)
    for vox in range(nvox):
        aif_padded[:ntpts] = aif[:, vox]
        aifconv = dt * convmtx_circular(aif_padded)
        modelfit[:, vox] = aifconv.dot(residue[:, vox])[:ntpts]
    return modelfit

def wild_bootstrap(data, aif, dt, mag, residue, nwb=1000, rng=None, progress_cb=None):
    """
    Wild bootstrap estimate of the standard deviation of the magnitude

    :param data: Tissue curves, shape (T, V) or (T,)
    :param aif: AIF for each voxel, same shape as ``data``
    :param dt: Time sampling interval (s)
    :param mag: Magnitude (V,) as returned by ``deconv``, or None if ``residue`` is not normalised
    :param residue: Residue functions as returned by ``deconv``, shape (T+P, V)
    :param nwb: Number of bootstrap replicates. With a single replicate the standard
                deviation is undefined and NonFiniteResultError is raised
    :param rng: Random number generator or integer seed
    :param progress_cb: Optional callable taking (replicates done, total replicates)

    :return: Standard deviation of magnitude, shape (V,)
    """
    data = voxel_matrix(data, "data")
    aif = voxel_matrix(aif, "aif")
    check_same_shape(data, aif)
    dt = check_dt(dt)
    residue = np.asarray(residue, dtype=np.float64)
    if residue.ndim == 1:
        residue = residue[:, np.newaxis]
    if mag is not None:
        mag = np.atleast_1d(np.asarray(mag, dtype=np.float64))
        if mag.shape != (data.shape[1],):
            raise ShapeMismatchError("Magnitude must have one value per voxel: %s" % (mag.shape,))
    nwb = int(nwb)
    if nwb < 1:
        raise DomainError("At least 1 bootstrap replicate is required: %i" % nwb)
    rng = get_rng(rng)

    ntpts, nvox = data.shape
    modelfit = model_fit(aif, residue, dt, mag)
    residuals = data - modelfit

    magdist = np.zeros((nwb, nvox))
    report_progress(progress_cb, 0, nwb)
    for rep in range(nwb):
        radevec = rademacher(ntpts, rng)
        wbdata = modelfit + residuals * radevec[:, np.newaxis]
        estresid = svd_deconv_wu(wbdata, aif, dt)
        magdist[rep] = np.max(estresid, axis=0)
        report_progress(progress_cb, rep+1, nwb)

    magsd = np.std(magdist, axis=0, ddof=1)
    return check_finite(magsd, "bootstrap magnitude standard deviation")
