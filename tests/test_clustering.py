"""Jet clustering engine: scenario, partition and four-momentum properties."""

import numpy as np
import pytest

from jettree.clustering_algorithms import (
    JetAlgorithm, JetFinder, RecombScheme, cluster_native, p4_from_pt_rap_phi,
    p4_eta, p4_phi, p4_pt, preprocess, recombine,
)
from jettree.pool import CandidateParticle, ParticlePool, SourceKind


def massless_pool(ptetaphi):
    pool = ParticlePool()
    for i, (pt, eta, phi) in enumerate(ptetaphi):
        px, py, pz, e = p4_from_pt_rap_phi(pt, eta, phi)
        pool.append(CandidateParticle(px, py, pz, e, SourceKind.PARTICLE, 100 + i))
    return pool


def random_pool(n, seed=0):
    rng = np.random.default_rng(seed)
    pt = rng.exponential(3.0, n) + 0.2
    eta = rng.uniform(-1.0, 1.0, n)
    phi = rng.uniform(-np.pi, np.pi, n)
    return massless_pool(zip(pt, eta, phi))


@pytest.fixture(name="backend", params=["native", "fastjet"])
def fixture_backend(request):
    if request.param == "fastjet":
        pytest.importorskip("fastjet")
    return request.param


def test_three_particle_scenario(backend):
    """Two close particles merge; the distant one stays a single-particle jet."""
    pool = massless_pool([(10.0, 0.0, 0.0), (9.0, 0.0, 0.1), (1.0, 2.0, 2.0)])
    finder = JetFinder(JetAlgorithm.ANTIKT, R=0.4, scheme=RecombScheme.E, backend=backend)
    jets = finder.find(pool)

    assert len(jets) == 2
    jets = sorted(jets, key=lambda j: -j.n_constituents)
    assert jets[0].n_constituents == 2
    assert list(jets[0].constituents) == [0, 1]
    assert p4_pt(jets[0].p4) == pytest.approx(19.0, rel=1e-2)
    assert jets[1].n_constituents == 1
    assert list(jets[1].constituents) == [2]
    assert p4_pt(jets[1].p4) == pytest.approx(1.0)


def test_pt_scheme_sums_pt(backend):
    pool = massless_pool([(10.0, 0.0, 0.0), (9.0, 0.0, 0.1)])
    jets = JetFinder(JetAlgorithm.ANTIKT, R=0.4, scheme=RecombScheme.PT, backend=backend).find(pool)
    assert len(jets) == 1
    assert p4_pt(jets[0].p4) == pytest.approx(19.0)
    # pt-weighted azimuth
    assert p4_phi(jets[0].p4) == pytest.approx(0.9 / 19.0)


@pytest.mark.parametrize("algorithm", list(JetAlgorithm))
@pytest.mark.parametrize("scheme", list(RecombScheme))
def test_partition(algorithm, scheme):
    """Every pool index lands in exactly one jet."""
    pool = random_pool(40, seed=3)
    jets = cluster_native(pool.p4, algorithm=algorithm, R=0.4, scheme=scheme)

    all_idx = np.concatenate([j.constituents for j in jets])
    assert len(all_idx) == len(pool)
    assert sorted(all_idx.tolist()) == list(range(len(pool)))
    for jet in jets:
        assert np.all(np.diff(jet.constituents) > 0)
        assert len(jet.constituent_p4) == jet.n_constituents


@pytest.mark.parametrize("algorithm", list(JetAlgorithm))
def test_e_scheme_conserves_four_momentum(algorithm):
    pool = random_pool(30, seed=7)
    p4 = pool.p4
    for jet in cluster_native(p4, algorithm=algorithm, R=0.6, scheme=RecombScheme.E):
        np.testing.assert_allclose(jet.p4, p4[jet.constituents].sum(axis=0), rtol=1e-9, atol=1e-9)


def test_native_matches_fastjet():
    pytest.importorskip("fastjet")
    pool = random_pool(60, seed=11)
    for algorithm in JetAlgorithm:
        native = JetFinder(algorithm, 0.4, RecombScheme.E, backend="native").find(pool)
        fj = JetFinder(algorithm, 0.4, RecombScheme.E, backend="fastjet").find(pool)
        assert sorted(tuple(j.constituents) for j in native) == sorted(tuple(j.constituents) for j in fj)


def test_empty_pool(backend):
    assert JetFinder(backend=backend).find(ParticlePool()) == []


def test_non_positive_radius():
    with pytest.raises(ValueError):
        JetFinder(R=0.0)
    with pytest.raises(ValueError):
        cluster_native(np.ones((1, 4)), R=-0.4)


def test_unknown_backend():
    with pytest.raises(ValueError):
        JetFinder(backend="siscone")


def test_preprocess_schemes():
    p4 = np.array([[3.0, 4.0, 0.0, 10.0]])
    # pt schemes make the input massless by rescaling E to |p|
    np.testing.assert_allclose(preprocess(p4, RecombScheme.PT)[0], [3.0, 4.0, 0.0, 5.0])
    # Et schemes rescale the 3-momentum to |p| = E
    np.testing.assert_allclose(preprocess(p4, RecombScheme.ET)[0], [6.0, 8.0, 0.0, 10.0])
    np.testing.assert_allclose(preprocess(p4, RecombScheme.E)[0], p4[0])
    assert preprocess(np.zeros((0, 4)), RecombScheme.PT).shape == (0, 4)


def test_recombine_wraps_azimuth():
    pa = p4_from_pt_rap_phi(1.0, 0.0, np.pi - 0.05)
    pb = p4_from_pt_rap_phi(1.0, 0.0, -np.pi + 0.05)
    merged = recombine(pa, pb, RecombScheme.PT)
    assert p4_pt(merged) == pytest.approx(2.0)
    assert abs(float(p4_phi(merged))) == pytest.approx(np.pi)
    assert p4_eta(merged) == pytest.approx(0.0, abs=1e-12)
