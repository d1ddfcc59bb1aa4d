# example_config.py
import numpy as np

# -----------------------------
# Processes (samples)
# -----------------------------
PROCESSES = {
    "pp200_pythia": {
        "path": "data/pp200_pythia/dst_flat.root",
        "label": r"PYTHIA8 p+p $\sqrt{s}$ = 200 GeV",
    },
}

TREE_NAME = "T"

# -----------------------------
# Runtime control
# -----------------------------
RUNTIME = {
    "max_events": None,
    "event_sampling": "head",
    "stride": 1,
    "use_tqdm": True,
}

# -----------------------------
# Branch mapping (node -> field -> branch)
# A node mapped to None is not read; collectors then report it as missing.
# -----------------------------
BRANCHES = {
    "vertex": {
        "x": "vtx_x",
        "y": "vtx_y",
        "z": "vtx_z",
    },
    "truth_vertex": {
        "x": "truth_vtx_x",
        "y": "truth_vtx_y",
        "z": "truth_vtx_z",
    },
    "tracks": {
        "id": "trk_id",
        "px": "trk_px",
        "py": "trk_py",
        "pz": "trk_pz",
        "quality": "trk_quality",
        "n_mvtx": "trk_nmvtx",
        "n_intt": "trk_nintt",
        "n_tpc": "trk_ntpc",
    },
    "flow": {
        "id": "pf_id",
        "e": "pf_e",
        "px": "pf_px",
        "py": "pf_py",
        "pz": "pf_pz",
    },
    "emcal_clusters": {
        "id": "emc_id",
        "e": "emc_e",
        "x": "emc_x",
        "y": "emc_y",
        "z": "emc_z",
    },
    "ihcal_clusters": {
        "id": "ihc_id",
        "e": "ihc_e",
        "x": "ihc_x",
        "y": "ihc_y",
        "z": "ihc_z",
    },
    "ohcal_clusters": {
        "id": "ohc_id",
        "e": "ohc_e",
        "x": "ohc_x",
        "y": "ohc_y",
        "z": "ohc_z",
    },
    "particles": {
        "barcode": "gen_barcode",
        "status": "gen_status",
        "pid": "gen_pid",
        "px": "gen_px",
        "py": "gen_py",
        "pz": "gen_pz",
        "e": "gen_e",
        "from_outgoing_parton": "gen_from_parton",
    },
}

# -----------------------------
# Jet definition
# -----------------------------
JETS = {
    "R": 0.4,
    # "all" | "charged"
    "type": "all",
    # "antikt" | "kt" | "cambridge"
    "algorithm": "antikt",
    # "E" | "pt" | "pt2" | "Et" | "Et2"
    "recomb": "pt",
    # "fastjet" | "native"
    "backend": "fastjet",
}

# -----------------------------
# Detector-view sources (enabled flags + pool order)
# "hcal" adds inner then outer HCal clusters
# -----------------------------
SOURCES = {
    "order": ("flow", "tracks", "ecal", "hcal"),
    "flow": False,
    "tracks": True,
    "ecal": True,
    "hcal": True,
}

# -----------------------------
# Acceptance (closed ranges)
# -----------------------------
ACCEPTANCE = {
    "particles": {"pt": (0.1, 9999.0), "eta": (-1.1, 1.1)},
    "tracks": {
        "pt": (0.1, 100.0),
        "eta": (-1.1, 1.1),
        "quality": (-1.0, 10.0),
        "n_mvtx": (2, 100),
        "n_intt": (1, 100),
        "n_tpc": (35, 100),
    },
    "flow": {"pt": (0.0, 9999.0), "eta": (-1.1, 1.1)},
    "ecal": {"pt": (0.0, 9999.0), "eta": (-1.1, 1.1)},
    "hcal": {"pt": (0.0, 9999.0), "eta": (-1.1, 1.1)},
}

PARTICLES = {
    "charged_only": False,
    "exclude_outgoing_partons": True,
}

EVENT = {
    "enabled": True,
    "vz": (-10.0, 10.0),
    "vxy": (-5.0, 5.0),
}

IS_MC = True
DEBUG = False

# -----------------------------
# Reco -> truth jet matching (fills JetMatchID)
# -----------------------------
MATCHING = {
    "enabled": True,
    "dR_match": 0.3,
    "pt_gen_min": 0.0,
    "pt_reco_min": 0.0,
}

# -----------------------------
# QA binning
# -----------------------------
QA = {
    "bins": {
        "pt": np.linspace(0, 100, 201),
        "eta": np.linspace(-5, 5, 201),
        "phi": np.linspace(-np.pi, np.pi, 361),
        "ene": np.linspace(0, 100, 201),
        "ncst": np.arange(0, 101, 1),
    },
}

# -----------------------------
# Output
# -----------------------------
OUTDIR = "outputs"

OUTPUT = {
    "file": "jet_trees.root",
    "truth_tree": "TruthJetTree",
    "reco_tree": "RecoJetTree",
    "qa_file": "qa_histograms.npz",
}

PLOT_LABELS = {
    "exp": "sPHENIX",
    "llabel": "Simulation",
    "rlabel": "p+p 200 GeV",
}
