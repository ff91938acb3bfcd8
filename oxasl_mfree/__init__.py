"""
OXASL_MFREE - Model-free analysis of ASL data
=============================================

Copyright (c) 2010-2020 University of Oxford

Model-free quantification of perfusion from multi-delay ASL data (e.g. QUASAR
or Look-Locker pCASL) by deconvolution of the tissue signal with an arterial
input function (AIF). This is a Python replacement for the ``asl_mfree``
FSL tool.

Numerical functions
~~~~~~~~~~~~~~~~~~~

The numerical functions operate on matrices of shape (time points, voxels)
and do not depend on any image library::

    mag, resid = deconv(data, aif, dt=0.3)
    batd = estimate_bat_difference(resid, dt=0.3)
    cbf = correct_magnitude(mag, batd, t1=1.6)
    magsd = wild_bootstrap(data, aif, 0.3, mag, resid, nwb=1000, rng=1234)

 - :mod:`convmtx` - Standard and circular convolution matrices
 - :mod:`deconv` - SVD deconvolution (fixed truncation or oscillation index)
 - :mod:`bootstrap` - Wild bootstrap estimation of magnitude precision
 - :mod:`aif` - Replacement of poor quality AIFs by the nearest good AIF
 - :mod:`timing` - Bolus arrival time difference and onset estimation
 - :mod:`correct` - Magnitude correction for arrival time differences

Errors are reported by raising exceptions from :mod:`errors`.

Workflow
~~~~~~~~

The :mod:`mfree` module contains a ``run`` function which operates on a
``Workspace`` containing Nifti images (as ``fsl.data.image.Image``) and
the ``main`` function of the ``oxasl_mfree`` command line tool::

    oxasl_mfree --data diffdata.nii.gz --aif aif.nii.gz --mask mask.nii.gz --dt 0.3 -o mfree_out
"""

try:
    from ._version import __version__, __timestamp__
except ImportError:
    __version__ = "unknown"
    __timestamp__ = "unknown"

from .errors import MfreeError, ShapeMismatchError, DomainError, SingularError, NoDonorError, NonFiniteResultError
from .convmtx import convmtx, convmtx_circular
from .deconv import svd_deconv, svd_deconv_circular, svd_deconv_wu, deconv, oscillation_index
from .bootstrap import wild_bootstrap
from .aif import prepare_aif
from .timing import estimate_bat_difference, estimate_onset, onset_difference
from .correct import correct_magnitude
from .workspace import Workspace

# Work around ugly FSL log message
import logging
logging.basicConfig()
logging.getLogger("fsl.utils.platform").setLevel(logging.CRITICAL)

__all__ = [
    "__version__",
    "MfreeError",
    "ShapeMismatchError",
    "DomainError",
    "SingularError",
    "NoDonorError",
    "NonFiniteResultError",
    "convmtx",
    "convmtx_circular",
    "svd_deconv",
    "svd_deconv_circular",
    "svd_deconv_wu",
    "deconv",
    "oscillation_index",
    "wild_bootstrap",
    "prepare_aif",
    "estimate_bat_difference",
    "estimate_onset",
    "onset_difference",
    "correct_magnitude",
    "Workspace",
]
