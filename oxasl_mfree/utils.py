"""
Misc utility functions
"""
import io
import sys
import warnings

import numpy as np

from oxasl_mfree.errors import ShapeMismatchError, DomainError, NonFiniteResultError

class Tee(object):
    """
    Output stream which keeps a string record of everything
    written to it, and also sends it on to any number of
    sub-streams
    """

    def __init__(self, *streams):
        self._streams = [io.StringIO(),]
        self._streams.extend(streams)

    def add(self, stream):
        """
        Add a sub-stream
        """
        if stream:
            self._streams.append(stream)

    def write(self, text):
        """
        Write to all output streams
        """
        for stream in self._streams:
            stream.write(text)

    def flush(self):
        """
        Flush all output streams
        """
        for stream in self._streams:
            stream.flush()

    def __str__(self):
        return self._streams[0].getvalue()

def percent_progress(log=sys.stdout):
    """
    Create a progress callback which updates a percentage on a stream

    :param log: Stream-like object - default is ``sys.stdout``
    :return: Callable taking (done, total)
    """
    def _progress(done, total):
        complete = 100 * done / total
        if done == 0:
            log.write("  0%")
        else:
            log.write("\b\b\b\b%3i%%" % complete)
        if done == total:
            log.write("\n")
        log.flush()
    return _progress

def report_progress(progress_cb, done, total):
    """
    Call a progress callback, if there is one

    Progress reporting is advisory, so a failing callback is reported as
    a warning and does not interrupt processing
    """
    if progress_cb is None:
        return
    try:
        progress_cb(done, total)
    except Exception as exc:
        warnings.warn("Progress callback failed: %s" % exc)

def voxel_matrix(arr, name="data", min_rows=3):
    """
    Get an input as a floating point (T, V) matrix

    1D arrays are treated as a single voxel time course

    :param arr: Array-like with shape (T,) or (T, V)
    :param name: Name of the input, used in error messages
    :param min_rows: Minimum number of time points
    """
    mat = np.asarray(arr, dtype=np.float64)
    if mat.ndim == 1:
        mat = mat[:, np.newaxis]
    if mat.ndim != 2:
        raise ShapeMismatchError("%s must be 1D or 2D (time points x voxels), got shape %s" % (name, mat.shape))
    if mat.shape[0] < min_rows:
        raise ShapeMismatchError("%s must have at least %i time points, got %i" % (name, min_rows, mat.shape[0]))
    if mat.shape[1] < 1:
        raise ShapeMismatchError("%s does not contain any voxels" % name)
    if not np.all(np.isfinite(mat)):
        raise DomainError("%s contains NaN or infinite values" % name)
    return mat

def check_same_shape(data, aif):
    """
    Check data and AIF matrices match
    """
    if data.shape != aif.shape:
        raise ShapeMismatchError("Data and AIF must have the same shape: %s vs %s" % (data.shape, aif.shape))

def check_dt(dt):
    """
    Check the time sampling interval is valid and return it as a float
    """
    dt = float(dt)
    if not dt > 0 or not np.isfinite(dt):
        raise DomainError("Time sampling interval must be > 0: %f" % dt)
    return dt

def check_fraction(value, name, allow_zero=True):
    """
    Check a threshold is in [0, 1] (or (0, 1] if allow_zero is False)
    """
    value = float(value)
    if allow_zero and not 0 <= value <= 1:
        raise DomainError("%s must be between 0 and 1: %f" % (name, value))
    elif not allow_zero and not 0 < value <= 1:
        raise DomainError("%s must be > 0 and <= 1: %f" % (name, value))
    return value

def check_finite(arr, name):
    """
    Check that a per-voxel result does not contain NaN/Inf values

    :param arr: Array with voxels as the last dimension
    """
    bad = ~np.isfinite(arr)
    if bad.ndim > 1:
        bad = np.any(bad.reshape(-1, bad.shape[-1]), axis=0)
    if np.any(bad):
        raise NonFiniteResultError("Non-finite values in %s" % name, voxels=np.nonzero(bad)[0])
    return arr
