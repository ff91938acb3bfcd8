"""
OXASL_MFREE - Convolution matrices

The convolution of an AIF with a residue function is expressed as a
matrix multiplication, so deconvolution becomes inversion of the matrix
returned by these functions.

Copyright (c) 2010-2020 University of Oxford
"""
import numpy as np
import scipy.linalg

from oxasl_mfree.errors import ShapeMismatchError

def _as_vector(invec):
    vec = np.asarray(invec, dtype=np.float64)
    if vec.ndim == 2 and 1 in vec.shape:
        vec = vec.ravel()
    if vec.ndim != 1 or vec.size == 0:
        raise ShapeMismatchError("Convolution matrix must be built from a non-empty vector, got shape %s" % (vec.shape,))
    return vec

def convmtx(invec):
    """
    Create a (causal) convolution matrix

    Row ``i`` contains ``invec[i], invec[i-1], ..., invec[0]`` followed by
    zeros, so the matrix is lower triangular

    :param invec: Vector of length N
    :return: N x N numpy array
    """
    vec = _as_vector(invec)
    return scipy.linalg.toeplitz(vec, np.zeros(len(vec)))

def convmtx_circular(invec):
    """
    Create a circular convolution matrix

    Each row is a cyclic shift of the input, i.e. ``cmat[i, j] = invec[(i-j) % N]``

    :param invec: Vector of length N
    :return: N x N numpy array
    """
    return scipy.linalg.circulant(_as_vector(invec))
