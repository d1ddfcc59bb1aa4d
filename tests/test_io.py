"""uproot-backed event reader and jet tree writer."""

import awkward as ak
import numpy as np
import pytest
import uproot

from jettree.driver import EventDriver
from jettree.qa import QAAggregator
from jettree.sources import MissingSourceError, RootEventReader, Track
from jettree.utils import RootTreeWriter

BRANCHES = {
    "vertex": {"x": "vtx_x", "y": "vtx_y", "z": "vtx_z"},
    "tracks": {
        "id": "trk_id", "px": "trk_px", "py": "trk_py", "pz": "trk_pz",
        "quality": "trk_quality", "n_mvtx": "trk_nmvtx", "n_intt": "trk_nintt", "n_tpc": "trk_ntpc",
    },
    "particles": {
        "barcode": "gen_barcode", "status": "gen_status", "pid": "gen_pid",
        "px": "gen_px", "py": "gen_py", "pz": "gen_pz", "e": "gen_e",
    },
    "emcal_clusters": None,
}


@pytest.fixture(name="flat_ntuple")
def fixture_flat_ntuple(tmp_path):
    """Two events: three tracks/particles in the first, none in the second."""
    path = str(tmp_path / "flat.root")
    px = [[10.0, 9.0 * np.cos(0.1), 0.0], []]
    py = [[0.0, 9.0 * np.sin(0.1), 1.0], []]
    pz = [[0.0, 0.0, 0.5], []]
    e = [[np.sqrt(100.0 + 0.13957**2), np.sqrt(81.0 + 0.13957**2), np.sqrt(1.25)], []]
    with uproot.recreate(path) as fout:
        fout["T"] = {
            "vtx_x": np.array([0.0, 0.1]),
            "vtx_y": np.array([0.0, -0.1]),
            "vtx_z": np.array([1.0, -2.0]),
            "trk_id": ak.Array([[1, 2, 3], []]),
            "trk_px": ak.Array(px),
            "trk_py": ak.Array(py),
            "trk_pz": ak.Array(pz),
            "trk_quality": ak.Array([[1.0, 1.0, 1.0], []]),
            "trk_nmvtx": ak.Array([[3, 3, 3], []]),
            "trk_nintt": ak.Array([[2, 2, 2], []]),
            "trk_ntpc": ak.Array([[40, 40, 40], []]),
            "gen_barcode": ak.Array([[101, 102, 103], []]),
            "gen_status": ak.Array([[1, 1, 1], []]),
            "gen_pid": ak.Array([[211, -211, 22], []]),
            "gen_px": ak.Array(px),
            "gen_py": ak.Array(py),
            "gen_pz": ak.Array(pz),
            "gen_e": ak.Array(e),
        }
    return path


def test_reader_builds_event_store(flat_ntuple):
    reader = RootEventReader(flat_ntuple, "T", BRANCHES)
    assert len(reader) == 2

    store = reader.event(0)
    np.testing.assert_allclose(store.vertex(), [0.0, 0.0, 1.0])
    assert len(store["tracks"]) == 3
    assert store["tracks"][0] == Track(id=1, px=10.0, py=0.0, pz=0.0, quality=1.0, n_mvtx=3, n_intt=2, n_tpc=40)
    assert [p.pid for p in store["particles"]] == [211, -211, 22]

    # unmapped nodes are reported as missing
    with pytest.raises(MissingSourceError):
        store.require("emcal_clusters")

    assert reader.event(1)["tracks"] == []
    assert len(list(reader)) == 2


def test_reader_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        RootEventReader(str(tmp_path / "nope.root"), "T", BRANCHES)


def test_writer_round_trip(flat_ntuple, jet_config, tmp_path):
    reader = RootEventReader(flat_ntuple, "T", BRANCHES)
    jet_config.sources = {"flow": False, "tracks": True, "ecal": False, "hcal": False}
    truth_writer, reco_writer = RootTreeWriter("TruthJetTree"), RootTreeWriter("RecoJetTree")
    driver = EventDriver(jet_config, QAAggregator(), truth_sink=truth_writer, reco_sink=reco_writer)
    for ievt, store in enumerate(reader):
        driver.process_event(store, ievt)

    arrays = reco_writer.arrays()
    assert list(arrays["NumJets"]) == [2, 0]
    assert sorted(ak.to_list(arrays["Jet"].NCst[0])) == [1, 2]

    out = str(tmp_path / "trees.root")
    with uproot.recreate(out) as fout:
        assert truth_writer.write(fout) == 2
        assert reco_writer.write(fout) == 2

    with uproot.open(out) as fin:
        reco_keys = set(fin["RecoJetTree"].keys())
        reco = fin["RecoJetTree"].arrays()
        truth = fin["TruthJetTree"].arrays()

    assert {"nJet", "Jet_NCst", "Jet_Pt", "nCst", "Cst_ID"} <= reco_keys
    assert not any("." in k for k in reco_keys)
    assert list(reco["Event"]) == [0, 1]
    assert ak.to_list(reco["nJet"]) == [2, 0]
    assert ak.to_list(reco["nCst"]) == [3, 0]
    assert sorted(ak.to_list(reco["Cst_ID"][0])) == [1, 2, 3]
    assert ak.to_list(reco["NumTrks"]) == [3, 0]
    assert ak.to_list(truth["NumChrgPars"]) == [2, 0]
    assert sorted(ak.to_list(truth["Cst_ID"][0])) == [101, 102, 103]
    # constituent count per jet splits the flattened constituent branches
    assert ak.to_list(ak.sum(reco["Jet_NCst"], axis=1)) == [3, 0]


def test_empty_writer():
    assert RootTreeWriter("T").arrays() == {}
