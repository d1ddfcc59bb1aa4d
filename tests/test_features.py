"""Jet and constituent feature formulas."""

import numpy as np
import pytest

from jettree.clustering_algorithms import ClusteredJet, p4_from_pt_rap_phi, p4_phi
from jettree.features import (
    NO_MATCH, EventRecord, build_jet_records, constituent_features,
)
from jettree.pool import CandidateParticle, ParticlePool, Provenance, SourceKind
from jettree.qa import ObjectKind, QAAggregator


def test_constituent_formulas():
    cst = np.array([3.0, 4.0, 0.0, 5.0])
    jet = np.array([6.0, 8.0, 0.0, 10.0])
    prov = Provenance(SourceKind.TRACK, 42)
    rec = constituent_features(cst, jet, 0.0, float(p4_phi(jet)), prov)

    # z = |p_cst|^2 / |p_jet|
    assert rec.z == pytest.approx(25.0 / 10.0)
    assert rec.dr == pytest.approx(0.0, abs=1e-12)
    assert rec.jt == pytest.approx(5.0)
    assert rec.e == pytest.approx(5.0)
    assert rec.cst_id == 42
    assert rec.provenance.kind == SourceKind.TRACK


def test_dr_has_no_azimuthal_wrap():
    """Constituent and jet on either side of phi = pi are far apart in dr."""
    cst = p4_from_pt_rap_phi(1.0, 0.0, np.pi - 0.05)
    jet_phi = -np.pi + 0.05
    rec = constituent_features(cst, p4_from_pt_rap_phi(2.0, 0.0, jet_phi), 0.0, jet_phi,
                               Provenance(SourceKind.FLOW, 1))
    assert rec.dr == pytest.approx(2*np.pi - 0.1)


def test_zero_momentum_jet():
    rec = constituent_features(np.array([0.0, 0.0, 0.0, 0.0]), np.zeros(4), 0.0, 0.0,
                               Provenance(SourceKind.ECAL, 1))
    assert np.isnan(rec.z)


def _two_jet_event():
    pool = ParticlePool()
    p4s = [p4_from_pt_rap_phi(10.0, 0.0, 0.0), p4_from_pt_rap_phi(9.0, 0.0, 0.1),
           p4_from_pt_rap_phi(1.0, 0.5, 2.0)]
    kinds = [SourceKind.TRACK, SourceKind.ECAL, SourceKind.TRACK]
    for i, (p4, kind) in enumerate(zip(p4s, kinds)):
        pool.append(CandidateParticle(*p4, kind, 10 + i))
    jets = [
        ClusteredJet(p4=p4s[0] + p4s[1], constituents=np.array([0, 1]), constituent_p4=np.array(p4s[:2])),
        ClusteredJet(p4=p4s[2], constituents=np.array([2]), constituent_p4=np.array(p4s[2:])),
    ]
    return pool, jets


def test_build_jet_records():
    pool, jets = _two_jet_event()
    qa = QAAggregator()
    records = build_jet_records(jets, pool, "reco", qa=qa, match_ids={1: 0})

    assert [r.jet_id for r in records] == [0, 1]
    assert records[0].match_id == NO_MATCH
    assert records[1].match_id == 0
    assert records[0].area == 0.0
    assert records[0].n_constituents == 2
    assert [c.provenance for c in records[0].constituents] == [
        Provenance(SourceKind.TRACK, 10), Provenance(SourceKind.ECAL, 11)]
    assert records[1].pt == pytest.approx(1.0)
    assert records[1].eta == pytest.approx(0.5)

    assert qa.counters[ObjectKind.RJET].accepted == 2
    assert qa.counters[ObjectKind.RCST].accepted == 3
    assert qa.counters[ObjectKind.TJET].accepted == 0
    assert qa.jet_ncst["reco"].entries == 2


def test_event_record_columns():
    pool, jets = _two_jet_event()
    rec = EventRecord(view="reco", event=7, vertex=(0.0, 0.1, 2.0),
                      scalars={"NumTrks": 3}, jets=build_jet_records(jets, pool, "reco"))
    cols = rec.to_columns()

    assert cols["Event"] == 7
    assert cols["NumJets"] == 2
    assert cols["VtxZ"] == 2.0
    assert cols["NumTrks"] == 3
    assert cols["JetNCst"] == [2, 1]
    assert cols["CstID"] == [[10, 11], [12]]
    assert cols["CstSource"] == [[int(SourceKind.TRACK), int(SourceKind.ECAL)], [int(SourceKind.TRACK)]]
    # jet-level columns all have one entry per jet
    for key in ("JetID", "JetMatchID", "JetE", "JetPt", "JetEta", "JetPhi", "JetArea"):
        assert len(cols[key]) == 2
