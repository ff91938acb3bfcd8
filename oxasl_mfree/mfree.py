#!/bin/env python
"""
OXASL_MFREE: Model-free analysis of ASL data

Deconvolution of multi-delay ASL data with a voxelwise arterial input
function to obtain a perfusion-weighted magnitude, the residue function and
bolus arrival time differences.

Michael Chappell, FMRIB Image Analysis Group & IBME

Copyright (c) 2010-2020 University of Oxford
"""

import os
import sys
import traceback
from optparse import OptionGroup

import numpy as np

from fsl.data.image import Image

from oxasl_mfree import __version__, Workspace
from oxasl_mfree.aif import prepare_aif
from oxasl_mfree.bootstrap import wild_bootstrap
from oxasl_mfree.correct import correct_magnitude
from oxasl_mfree.deconv import deconv
from oxasl_mfree.errors import ShapeMismatchError
from oxasl_mfree.image import summary, voxel_timeseries, voxel_image
from oxasl_mfree.options import AslOptionParser, OptionCategory, GenericOptions
from oxasl_mfree.timing import estimate_bat_difference, onset_difference
from oxasl_mfree.utils import percent_progress

class MfreeOptions(OptionCategory):
    """
    OptionCategory which contains options for model-free analysis
    """

    def __init__(self):
        OptionCategory.__init__(self, "mfree")

    def groups(self, parser):
        groups = []
        group = OptionGroup(parser, "Model-free analysis")
        group.add_option("--data", "-i", help="Differenced (label-control) ASL data", type="image")
        group.add_option("--aif", help="Voxelwise arterial input functions, same shape as data", type="image")
        group.add_option("--dt", help="Time between volumes (s)", type=float)
        groups.append(group)

        group = OptionGroup(parser, "AIF preparation")
        group.add_option("--metric", help="AIF quality metric image. AIFs below the metric threshold are replaced by the nearest good AIF", type="image")
        group.add_option("--mthresh", help="Metric threshold for a good AIF, required with --metric", type=float)
        group.add_option("--donors-in-mask", help="Only take replacement AIFs from voxels inside the mask", action="store_true", default=False)
        groups.append(group)

        group = OptionGroup(parser, "Arrival time")
        group.add_option("--bat-method", help="Method for BAT difference between tissue and AIF: residue (peak of residue function) or onset (edge detection)", default="residue")
        group.add_option("--bat-grad-thr", help="Gradient threshold for edge detection, as a fraction of the maximum gradient", type=float, default=0.2)
        group.add_option("--tcorrect", help="Correct magnitude for BAT difference between tissue and AIF", action="store_true", default=False)
        group.add_option("--t1", help="T1 of blood (s) for BAT correction", type=float, default=1.6)
        group.add_option("--fa", help="Flip angle (degrees) for Look-Locker readout correction, 0 for none", type=float, default=0.0)
        groups.append(group)

        group = OptionGroup(parser, "Precision")
        group.add_option("--std", help="Estimate standard deviation of the magnitude using wild bootstrapping", action="store_true", default=False)
        group.add_option("--nwb", help="Number of wild bootstrap samples", type=int, default=1000)
        group.add_option("--seed", help="Random number seed for wild bootstrapping", type=int, default=None)
        groups.append(group)

        return groups

def _check_inputs(wsp):
    if wsp.data is None:
        raise ValueError("ASL data not specified")
    if wsp.aif is None:
        raise ValueError("AIF not specified")
    if wsp.mask is None:
        raise ValueError("Mask not specified")
    if wsp.dt is None:
        raise ValueError("Time between volumes (dt) not specified")

    if wsp.data.ndim != 4:
        raise ShapeMismatchError("ASL data must be 4D: %s" % str(wsp.data.shape))
    if tuple(wsp.aif.shape) != tuple(wsp.data.shape):
        raise ShapeMismatchError("AIF shape %s does not match data shape %s" % (wsp.aif.shape, wsp.data.shape))
    if tuple(wsp.mask.shape[:3]) != tuple(wsp.data.shape[:3]):
        raise ShapeMismatchError("Mask shape %s does not match data shape %s" % (wsp.mask.shape, wsp.data.shape))
    if wsp.metric is not None and tuple(wsp.metric.shape[:3]) != tuple(wsp.data.shape[:3]):
        raise ShapeMismatchError("AIF metric shape %s does not match data shape %s" % (wsp.metric.shape, wsp.data.shape))
    if wsp.metric is not None and wsp.mthresh is None:
        raise ValueError("AIF metric threshold (mthresh) must be given with an AIF metric")
    if wsp.ifnone("bat_method", "residue") not in ("residue", "onset"):
        raise ValueError("Unknown BAT estimation method: %s" % wsp.bat_method)

def run(wsp):
    """
    Do model-free analysis of ASL data

    :param wsp: Workspace object

    Required workspace attributes
    -----------------------------

     - ``data`` : 4D Image of differenced ASL data
     - ``aif`` : 4D Image of voxelwise AIFs
     - ``mask`` : 3D brain mask Image
     - ``dt`` : Time between volumes (s)

    Optional workspace attributes
    -----------------------------

     - ``metric`` : AIF quality metric Image. AIFs below ``mthresh`` are replaced
     - ``mthresh`` : Metric threshold, required if ``metric`` is given
     - ``donors_in_mask`` : Only take replacement AIFs from within the mask
     - ``bat_method`` : ``residue`` (default) or ``onset``
     - ``bat_grad_thr`` : Gradient threshold for onset detection (default 0.2)
     - ``tcorrect`` : If True, correct magnitude for BAT difference
     - ``t1`` : T1 of blood (default 1.6s)
     - ``fa`` : Look-Locker flip angle in degrees (default 0, no correction)
     - ``std`` : If True, estimate the standard deviation of the magnitude
     - ``nwb`` : Number of wild bootstrap samples (default 1000)
     - ``seed`` : Random number seed for bootstrapping

    Workspace attributes updated
    ----------------------------

     - ``mfree`` : Sub workspace containing output images ``magnitude``, ``residue``,
                   ``batd``, ``bat``, ``bat_aif`` and optionally ``aif_prepared``,
                   ``magnitude_corrected`` and ``magnitude_sd``
    """
    _check_inputs(wsp)
    wsp.log.write("\nModel-free analysis\n")
    wsp.sub("mfree")

    mask = wsp.mask
    dt = wsp.dt
    progress = percent_progress(wsp.log)
    wsp.log.write(" - Time between volumes: %f s\n" % dt)
    wsp.log.write(" - Number of voxels in mask: %i\n" % np.count_nonzero(mask.data))

    aif_data = np.array(wsp.aif.data, dtype=np.float64)
    if wsp.metric is not None:
        mthresh = wsp.mthresh
        wsp.log.write(" - Preparing AIFs using quality metric %s with threshold %f\n" % (wsp.metric.name, mthresh))
        aif_data, nreplaced = prepare_aif(aif_data, wsp.metric.data, mask.data, mthresh,
                                          donors_in_mask=wsp.ifnone("donors_in_mask", False))
        wsp.log.write(" - Replaced AIF in %i voxels\n" % nreplaced)
        if nreplaced == 0:
            wsp.log.write(" - WARNING: No AIFs within the mask are below the metric threshold\n")
        wsp.mfree.aif_prepared = Image(aif_data, header=wsp.aif.header)

    data = voxel_timeseries(wsp.data, mask)
    aif = voxel_timeseries(aif_data, mask)

    wsp.log.write(" - Deconvolution: ")
    mag, resid = deconv(data, aif, dt, progress_cb=progress)
    wsp.mfree.magnitude = voxel_image(mag, mask, name="magnitude")
    wsp.mfree.residue = voxel_image(resid, mask, name="residue")

    grad_thr = wsp.ifnone("bat_grad_thr", 0.2)
    batd_onset, bat_tiss, bat_aif = onset_difference(data, aif, dt, grad_thr)
    wsp.mfree.bat = voxel_image(bat_tiss, mask, name="bat")
    wsp.mfree.bat_aif = voxel_image(bat_aif, mask, name="bat_aif")

    if wsp.ifnone("bat_method", "residue") == "residue":
        wsp.log.write(" - Estimating BAT difference from peak of residue function\n")
        batd = estimate_bat_difference(resid, dt)
    else:
        wsp.log.write(" - Estimating BAT difference from onset of tissue and AIF curves (gradient threshold %f)\n" % grad_thr)
        batd = batd_onset
    wsp.mfree.batd = voxel_image(batd, mask, name="batd")

    if wsp.tcorrect:
        t1, fa = wsp.ifnone("t1", 1.6), wsp.ifnone("fa", 0.0)
        wsp.log.write(" - Correcting magnitude for BAT difference using T1=%f\n" % t1)
        if fa > 0:
            wsp.log.write(" - Correcting for Look-Locker readout with flip angle %f degrees\n" % fa)
        mag_corr = correct_magnitude(mag, batd, t1, dt, fa)
        wsp.mfree.magnitude_corrected = voxel_image(mag_corr, mask, name="magnitude_corrected")

    if wsp.std:
        nwb = wsp.ifnone("nwb", 1000)
        wsp.log.write(" - Wild bootstrapping with %i samples: " % nwb)
        magsd = wild_bootstrap(data, aif, dt, mag, resid, nwb=nwb, rng=wsp.seed, progress_cb=progress)
        wsp.mfree.magnitude_sd = voxel_image(magsd, mask, name="magnitude_sd")

    wsp.log.write(" - Mean magnitude within mask: %f\n" % np.mean(mag))
    wsp.log.write(" - Mean BAT difference within mask: %f s\n" % np.mean(batd))
    wsp.log.write("\nDONE model-free analysis\n")

def main():
    """
    Entry point for oxasl_mfree command line program
    """
    debug = False
    wsp = None
    try:
        parser = AslOptionParser(usage="oxasl_mfree --data <diff data> --aif <aif> --mask <mask> --dt <time between volumes> -o <output dir> [options]", version=__version__)
        parser.add_category(MfreeOptions())
        parser.add_category(GenericOptions())
        options, _ = parser.parse_args()
        debug = options.debug

        for required in ("data", "aif", "mask", "dt"):
            if getattr(options, required) is None:
                sys.stderr.write("Required option not specified: %s\n" % required)
                parser.print_help()
                sys.exit(1)

        if not options.output:
            options.output = "mfree"
        if os.path.exists(options.output) and not options.overwrite:
            raise RuntimeError("Output directory exists - use --overwrite to overwrite it")

        wsp = Workspace(savedir=options.output, **vars(options))
        wsp.log.write("OXASL_MFREE version: %s\n" % __version__)
        for img in (wsp.data, wsp.aif, wsp.mask):
            summary(img, log=wsp.log)
        run(wsp)
        wsp.log.write("\nOutput is %s\n" % os.path.join(wsp.savedir, "mfree"))

    except (ValueError, RuntimeError) as exc:
        sys.stderr.write("ERROR: " + str(exc) + "\n")
        if debug:
            traceback.print_exc()
        if wsp is not None:
            wsp.log.write("ERROR: " + str(exc) + "\n")
        sys.exit(1)

if __name__ == "__main__":
    main()
