"""
Tests for SVD deconvolution
"""
import pytest
import numpy as np
import scipy.linalg

from oxasl_mfree import deconv, svd_deconv, svd_deconv_circular, svd_deconv_wu, oscillation_index
from oxasl_mfree import ShapeMismatchError, DomainError, SingularError, NonFiniteResultError
from oxasl_mfree.deconv import npad

DT = 0.3
NTPTS = 20

def _aif(ntpts=NTPTS, dt=DT, delay=0.0):
    """
    Gamma-variate like AIF
    """
    t = np.arange(ntpts) * dt - delay
    aif = np.zeros(ntpts)
    aif[t > 0] = t[t > 0]**2 * np.exp(-t[t > 0] / 0.3)
    return aif / np.max(aif)

def _data(flow=0.01, nvox=4, noise=0.0, seed=1):
    """
    Tissue curves from a single compartment residue with optional noise
    """
    t = np.arange(NTPTS) * DT
    aif = _aif()
    resid = np.exp(-t / 1.5)
    curve = flow * DT * np.convolve(aif, resid)[:NTPTS]
    data = np.tile(curve[:, np.newaxis], (1, nvox))
    if noise > 0:
        data += np.random.default_rng(seed).normal(0, noise, size=data.shape)
    return data, np.tile(aif[:, np.newaxis], (1, nvox))

def test_delta_aif_identity():
    """ Unit delta AIF returns the data as the residue """
    aif = [1, 0, 0, 0, 0]
    data = [0.5, 0.25, 0.125, 0.0625, 0.03125]
    resid = svd_deconv(data, aif, 1.0)
    assert resid.shape == (5, 1)
    np.testing.assert_allclose(resid[:, 0], data, atol=1e-12)

def test_delta_aif_dt():
    """ Data scaled by dt gives unscaled residue for a delta AIF """
    dt = 0.5
    sig = np.array([3.0, 2.0, 1.0, 0.5])
    resid = svd_deconv(dt * sig, [1, 0, 0, 0], dt)
    np.testing.assert_allclose(resid[:, 0], sig, atol=1e-12)

def test_svd_deconv_truncation():
    """ Compare with directly computed truncated pseudo-inverse """
    data, aif = _data(noise=0.0005)
    resid = svd_deconv(data, aif, DT)

    mat = DT * scipy.linalg.toeplitz(aif[:, 0], np.zeros(NTPTS))
    u, s, vt = np.linalg.svd(mat)
    sinv = np.where(s >= 0.2 * s[0], 1 / s, 0)
    for vox in range(data.shape[1]):
        expected = vt.T.dot(sinv * u.T.dot(data[:, vox]))
        np.testing.assert_allclose(resid[:, vox], expected, rtol=1e-8, atol=1e-12)

def test_svd_deconv_truncfac_zero():
    """ No truncation gives the exact inverse """
    data, aif = _data(nvox=1, noise=0.001)
    resid = svd_deconv(data, aif[:, 0] + 1, DT, truncfac=0)
    mat = DT * scipy.linalg.toeplitz(aif[:, 0] + 1, np.zeros(NTPTS))
    np.testing.assert_allclose(mat.dot(resid[:, 0]), data[:, 0], rtol=1e-6, atol=1e-10)

def test_svd_deconv_circular_shape():
    data, aif = _data(nvox=3)
    resid = svd_deconv_circular(data, aif, DT)
    assert resid.shape == (NTPTS, 3)

def test_svd_deconv_circular_delta():
    """ Unit delta AIF with circular matrix also returns the data """
    data = np.array([0.0, 1.0, 0.5, 0.25, 0.1, 0.05])
    aif = np.zeros(6)
    aif[0] = 1
    resid = svd_deconv_circular(data, aif, 1.0)
    np.testing.assert_allclose(resid[:, 0], data, atol=1e-12)

def test_npad():
    assert npad(5) == 6
    assert npad(10) == 12
    assert npad(3) == 3

def test_wu_shape():
    data, aif = _data(nvox=2)
    resid = svd_deconv_wu(data, aif, DT)
    assert resid.shape == (NTPTS + npad(NTPTS), 2)

def test_wu_no_truncation():
    """ With a very large OI threshold all singular values are kept """
    data, aif = _data(nvox=1, noise=0.001)
    resid = svd_deconv_wu(data, aif, DT, oi_thresh=1e12)
    ntot = NTPTS + npad(NTPTS)
    aif_p, data_p = np.zeros(ntot), np.zeros(ntot)
    aif_p[:NTPTS] = aif[:, 0]
    data_p[:NTPTS] = data[:, 0]
    mat = DT * scipy.linalg.circulant(aif_p)
    np.testing.assert_allclose(mat.dot(resid[:, 0]), data_p, rtol=1e-6, atol=1e-9)

def test_wu_full_truncation():
    """ With a zero OI threshold only the largest singular value is kept """
    data, aif = _data(nvox=1, noise=0.001)
    resid = svd_deconv_wu(data, aif, DT, oi_thresh=0)
    ntot = NTPTS + npad(NTPTS)
    aif_p, data_p = np.zeros(ntot), np.zeros(ntot)
    aif_p[:NTPTS] = aif[:, 0]
    data_p[:NTPTS] = data[:, 0]
    u, s, vt = np.linalg.svd(DT * scipy.linalg.circulant(aif_p))
    expected = vt[0] * u[:, 0].dot(data_p) / s[0]
    np.testing.assert_allclose(resid[:, 0], expected, rtol=1e-6, atol=1e-12)

def test_wu_oi_threshold_met():
    """ Returned residue meets the oscillation index threshold """
    data, aif = _data(nvox=5, noise=0.0005)
    resid = svd_deconv_wu(data, aif, DT)
    ntot = resid.shape[0]
    for vox in range(5):
        assert oscillation_index(resid[:, vox], ntot) <= 0.1

def test_oscillation_index():
    resid = np.array([0.5, 0.25, 0.125, 0.0625, 0.03125, 0, 0])
    assert oscillation_index(resid, 5) == pytest.approx(0.1)
    assert oscillation_index(resid, 7) == pytest.approx(0.25 / 3.5)
    assert oscillation_index(np.linspace(0, 1, 10), 10) == pytest.approx(0)

def test_deconv_delta():
    """ Delta AIF example: magnitude and normalised residue """
    aif = [1, 0, 0, 0, 0]
    data = [0.5, 0.25, 0.125, 0.0625, 0.03125]
    mag, resid = deconv(data, aif, 1.0)
    assert mag.shape == (1,)
    assert resid.shape == (11, 1)
    np.testing.assert_allclose(mag, [0.5], atol=1e-10)
    np.testing.assert_allclose(resid[:5, 0], [1, 0.5, 0.25, 0.125, 0.0625], atol=1e-10)
    np.testing.assert_allclose(resid[5:, 0], 0, atol=1e-10)

def test_deconv_normalised():
    data, aif = _data(noise=0.0002)
    mag, resid = deconv(data, aif, DT)
    np.testing.assert_allclose(np.max(resid, axis=0), 1)
    assert np.all(mag > 0)

def test_deconv_flow_estimate():
    """ Noiseless single compartment data gives a magnitude of the order of the flow """
    flow = 0.01
    data, aif = _data(flow=flow, nvox=1)
    mag, _ = deconv(data, aif, DT)
    assert 0.25 * flow < mag[0] < 2 * flow

def test_scale_data():
    """ Scaling data scales magnitude """
    data, aif = _data(noise=0.0005)
    mag, resid = deconv(data, aif, DT)
    mag2, resid2 = deconv(data * 3.5, aif, DT)
    np.testing.assert_allclose(mag2, mag * 3.5, rtol=1e-6)
    np.testing.assert_allclose(resid2, resid, rtol=1e-6, atol=1e-9)

def test_scale_aif():
    """ Scaling AIF scales magnitude inversely """
    data, aif = _data(noise=0.0005)
    mag, _ = deconv(data, aif, DT)
    mag2, _ = deconv(data, aif * 4, DT)
    np.testing.assert_allclose(mag2, mag / 4, rtol=1e-6)

def test_voxel_order():
    """ Voxel results do not depend on voxel order """
    data, aif = _data(nvox=6, noise=0.0005)
    mag, resid = deconv(data, aif, DT)
    order = [3, 5, 0, 2, 1, 4]
    mag2, resid2 = deconv(data[:, order], aif[:, order], DT)
    np.testing.assert_allclose(mag2, mag[order])
    np.testing.assert_allclose(resid2, resid[:, order])

def test_zero_aif():
    data, aif = _data(nvox=3)
    aif[:, 1] = 0
    with pytest.raises(SingularError) as exc_info:
        svd_deconv_wu(data, aif, DT)
    assert exc_info.value.voxel == 1
    with pytest.raises(SingularError):
        svd_deconv(data, aif, DT)

def test_zero_data():
    """ Zero data gives zero magnitude which cannot be normalised """
    data, aif = _data(nvox=3)
    data[:, 2] = 0
    with pytest.raises(NonFiniteResultError) as exc_info:
        deconv(data, aif, DT)
    assert exc_info.value.voxels == [2]

def test_shape_mismatch():
    data, aif = _data(nvox=3)
    with pytest.raises(ShapeMismatchError):
        svd_deconv(data, aif[:, :2], DT)
    with pytest.raises(ShapeMismatchError):
        deconv(data[:2], aif[:2], DT)
    with pytest.raises(ShapeMismatchError):
        svd_deconv_circular(np.ones((3, 3, 3)), np.ones((3, 3, 3)), DT)

def test_bad_dt():
    data, aif = _data(nvox=1)
    for dt in (0, -1.0, float("nan")):
        with pytest.raises(DomainError):
            deconv(data, aif, dt)

def test_bad_thresholds():
    data, aif = _data(nvox=1)
    with pytest.raises(DomainError):
        svd_deconv(data, aif, DT, truncfac=1.5)
    with pytest.raises(DomainError):
        svd_deconv_wu(data, aif, DT, oi_thresh=-0.1)

def test_nonfinite_input():
    data, aif = _data(nvox=2)
    data[3, 1] = np.nan
    with pytest.raises(DomainError):
        deconv(data, aif, DT)

def test_progress():
    data, aif = _data(nvox=3)
    calls = []
    svd_deconv_wu(data, aif, DT, progress_cb=lambda done, total: calls.append((done, total)))
    assert calls == [(0, 3), (1, 3), (2, 3), (3, 3)]

def test_progress_failure():
    """ A failing progress callback does not stop the deconvolution """
    data, aif = _data(nvox=2)
    def _bad_progress(done, total):
        raise IOError("stream closed")
    with pytest.warns(UserWarning):
        mag, _ = deconv(data, aif, DT, progress_cb=_bad_progress)
    assert mag.shape == (2,)
