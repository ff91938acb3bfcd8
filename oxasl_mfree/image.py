"""
OXASL_MFREE - Conversion between image volumes and voxel matrices

The numerical functions work on matrices of shape (time points, voxels).
These functions extract such matrices from 4D images within a mask and
put results back into image volumes.

Copyright (c) 2010-2020 University of Oxford
"""
import sys

import numpy as np

from fsl.data.image import Image

from oxasl_mfree.errors import ShapeMismatchError, DomainError

def summary(img, log=sys.stdout):
    """
    Write a summary of an Image to a stream

    :param img: fsl.data.image.Image object
    :param log: Stream-like object - default is ``sys.stdout``
    """
    data = img.data
    log.write("%s:\n" % (str(img.name).ljust(30)))
    log.write(" - Shape: %s\n" % str(list(img.shape)))
    if data.size > 0:
        log.write(" - Range: %f - %f\n" % (np.min(data), np.max(data)))

def _mask_data(mask):
    if isinstance(mask, Image):
        mask = mask.data
    mask = np.asarray(mask) > 0
    if mask.ndim != 3:
        raise ShapeMismatchError("Mask must be 3D, got shape %s" % (mask.shape,))
    if not np.any(mask):
        raise DomainError("Mask does not contain any voxels")
    return mask

def voxel_timeseries(img, mask):
    """
    Extract the time series of voxels within a mask

    :param img: 4D Image or array (X, Y, Z, T). A 3D image is treated as a single time point
    :param mask: 3D Image or array
    :return: Array of shape (T, V) with voxels in the same order as ``numpy.nonzero(mask)``
    """
    if isinstance(img, Image):
        img = img.data
    data = np.asarray(img, dtype=np.float64)
    if data.ndim == 3:
        data = data[..., np.newaxis]
    mask = _mask_data(mask)
    if data.ndim != 4 or data.shape[:3] != mask.shape:
        raise ShapeMismatchError("Image shape %s does not match mask shape %s" % (data.shape, mask.shape))
    return data[mask].T

def voxel_image(values, mask, header=None, name=None):
    """
    Create an Image from per-voxel values within a mask

    Voxels outside the mask are zero.

    :param values: Array of shape (V,) for a 3D image or (N, V) for a 4D image
    :param mask: 3D Image or array containing V nonzero voxels
    :param header: Header for the output image. Taken from ``mask`` if not given and mask is an Image
    :param name: Name of output image
    :return: fsl.data.image.Image
    """
    if header is None and isinstance(mask, Image):
        header = mask.header
    mask = _mask_data(mask)
    values = np.asarray(values, dtype=np.float64)
    nvox = np.count_nonzero(mask)
    if values.shape[-1] != nvox or values.ndim not in (1, 2):
        raise ShapeMismatchError("Values of shape %s cannot fill a mask with %i voxels" % (values.shape, nvox))

    if values.ndim == 1:
        data = np.zeros(mask.shape, dtype=np.float32)
        data[mask] = values
    else:
        data = np.zeros(list(mask.shape) + [values.shape[0]], dtype=np.float32)
        data[mask] = values.T
    return Image(data, header=header, name=name)
