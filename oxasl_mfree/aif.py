"""
OXASL_MFREE - Preparation of voxelwise arterial input functions

Copyright (c) 2010-2020 University of Oxford
"""
import numpy as np

from oxasl_mfree.errors import ShapeMismatchError, DomainError, NoDonorError
from oxasl_mfree.utils import check_fraction, report_progress

def prepare_aif(aif, metric, mask, mthresh=0.0, donors_in_mask=False, progress_cb=None):
    """
    Replace AIFs which do not meet a quality threshold with the nearest good AIF

    Voxels within the mask whose metric is below ``mthresh`` have their AIF
    replaced by the mean of the AIFs from the nearest voxels (by Euclidean
    distance in voxel coordinates) whose metric is at least ``mthresh``.
    Where several voxels are equally close their AIFs are averaged.
    A metric of NaN does not meet any threshold, so such voxels are replaced
    if inside the mask and are never used as replacements.

    :param aif: 4D AIF array (X, Y, Z, T). Modified in place
    :param metric: 3D AIF quality metric
    :param mask: 3D mask, voxels > 0 are processed
    :param mthresh: Metric threshold for a good AIF
    :param donors_in_mask: If True, only take replacement AIFs from voxels inside the mask.
                           By default good AIFs are taken from anywhere in the volume
    :param progress_cb: Optional callable taking (voxels done, total voxels to replace)

    :return: Tuple of the AIF array and the number of voxels that were replaced
    """
    if not isinstance(aif, np.ndarray) or aif.ndim != 4:
        raise ShapeMismatchError("AIF must be a 4D array")
    if not np.issubdtype(aif.dtype, np.floating):
        raise DomainError("AIF array must have a floating point type, got %s" % aif.dtype)
    metric = np.asarray(metric)
    mask = np.asarray(mask)
    if metric.shape != aif.shape[:3] or mask.shape != aif.shape[:3]:
        raise ShapeMismatchError("AIF metric %s and mask %s must match AIF volume shape %s" % (metric.shape, mask.shape, aif.shape[:3]))
    mthresh = check_fraction(mthresh, "AIF metric threshold")

    mask = mask > 0
    if not np.any(mask):
        raise DomainError("Mask does not contain any voxels")

    good = metric >= mthresh
    if donors_in_mask:
        donors = good & mask
    else:
        donors = good
    targets = np.argwhere(mask & ~good)
    if len(targets) == 0:
        return aif, 0
    if not np.any(donors):
        raise NoDonorError("No voxels have an AIF metric >= %f to replace %i voxels" % (mthresh, len(targets)))

    # Donor voxels are never replaced so can be extracted up front
    donor_coords = np.argwhere(donors)
    donor_aifs = aif[donors]

    report_progress(progress_cb, 0, len(targets))
    for idx, coords in enumerate(targets):
        # Strictly this is distance squared
        dist = np.sum((donor_coords - coords)**2, axis=1)
        nearest = dist == np.min(dist)
        aif[tuple(coords)] = np.mean(donor_aifs[nearest], axis=0)
        report_progress(progress_cb, idx+1, len(targets))

    return aif, len(targets)
