"""
OXASL_MFREE - Exceptions raised by the model-free analysis

Copyright (c) 2010-2020 University of Oxford
"""

class MfreeError(Exception):
    """
    Base class for errors in model-free ASL analysis
    """

class ShapeMismatchError(MfreeError, ValueError):
    """
    Thrown if input arrays have incompatible dimensions
    """

class DomainError(MfreeError, ValueError):
    """
    Thrown if a parameter is outside its valid range (e.g. dt <= 0)
    """

class NoDonorError(MfreeError, ValueError):
    """
    Thrown if no voxel meets the AIF quality threshold when one is needed
    """

class SingularError(MfreeError, RuntimeError):
    """
    Thrown if the SVD of a convolution matrix cannot be used, either because
    it failed to converge or because the AIF is identically zero
    """
    def __init__(self, msg, voxel=None):
        self.voxel = voxel
        if voxel is not None:
            RuntimeError.__init__(self, "voxel %i: %s" % (voxel, msg))
        else:
            RuntimeError.__init__(self, msg)

class NonFiniteResultError(MfreeError, RuntimeError):
    """
    Thrown if a result contains NaN or infinite values

    The indices of the offending voxels are stored in ``voxels``
    """
    def __init__(self, msg, voxels=()):
        self.voxels = list(voxels)
        if self.voxels:
            shown = ", ".join([str(v) for v in self.voxels[:10]])
            if len(self.voxels) > 10:
                shown += ", ..."
            RuntimeError.__init__(self, "%s (%i voxels: %s)" % (msg, len(self.voxels), shown))
        else:
            RuntimeError.__init__(self, msg)
