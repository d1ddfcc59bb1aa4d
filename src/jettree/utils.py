# src/jettree/utils.py
import os
import numpy as np
import awkward as ak
import uproot


def safe_ratio(num, den, default=np.nan) -> float:
    den = float(den)
    if den <= 0.0:
        return float(default)
    return float(num) / den


# -------------------------
# Matching: greedy one-to-one (RECO->GEN)
# -------------------------
def match_reco_to_gen(reco_pt, reco_eta, reco_phi,
                      gen_pt, gen_eta, gen_phi,
                      dR=0.3,
                      pt_reco_min=0.0,
                      pt_gen_min=0.0):
    """
    Greedy one-to-one matching driven by RECO jets (descending pT).
    Returns: dict reco_idx -> gen_idx
    """
    reco_pt = np.asarray(reco_pt, dtype=float)
    reco_eta = np.asarray(reco_eta, dtype=float)
    reco_phi = np.asarray(reco_phi, dtype=float)

    gen_pt = np.asarray(gen_pt, dtype=float)
    gen_eta = np.asarray(gen_eta, dtype=float)
    gen_phi = np.asarray(gen_phi, dtype=float)

    reco_idx_all = np.where(reco_pt >= float(pt_reco_min))[0]
    gen_idx_all = np.where(gen_pt >= float(pt_gen_min))[0]

    if len(reco_idx_all) == 0 or len(gen_idx_all) == 0:
        return {}

    # stable sort so equal-pT jets keep clustering order
    reco_sorted = reco_idx_all[np.argsort(-reco_pt[reco_idx_all], kind="stable")]

    used_gen = set()
    matched = {}
    thr2 = float(dR) * float(dR)

    gen_phi_sel = gen_phi[gen_idx_all]
    gen_eta_sel = gen_eta[gen_idx_all]

    for ir in reco_sorted:
        dphi = np.arctan2(np.sin(gen_phi_sel - reco_phi[ir]),
                          np.cos(gen_phi_sel - reco_phi[ir]))
        deta = gen_eta_sel - reco_eta[ir]
        dr2 = deta * deta + dphi * dphi
        dr2 = np.where([int(g) in used_gen for g in gen_idx_all], np.inf, dr2)

        jbest = int(np.argmin(dr2))
        if float(dr2[jbest]) >= thr2:
            continue

        ig = int(gen_idx_all[jbest])
        used_gen.add(ig)
        matched[int(ir)] = ig

    return matched


# -------------------------
# IO helpers
# -------------------------
def ensure_dir(path):
    os.makedirs(path, exist_ok=True)

def load_arrays(root_path, tree_name, branch_list, library="ak"):
    if not os.path.exists(root_path):
        raise FileNotFoundError(f"Input file not found: {root_path}")
    with uproot.open(root_path) as f:
        tree = f[tree_name]
        present = [b for b in branch_list if b in tree.keys()]
        return tree.arrays(present, library=library)


# -------------------------
# Output sinks
# -------------------------
class ListSink:
    """Keeps committed records in memory."""

    def __init__(self):
        self.records = []

    def commit(self, record):
        self.records.append(record)

    def __len__(self):
        return len(self.records)


class RootTreeWriter:
    """
    Buffers committed event records and writes them as one tree per call to
    ``write``. Jet-level columns become jagged branches (one entry per jet);
    constituent-level columns are flattened per event, their split given by
    the jet ``NCst`` branch. Branch names are fixed: ``nJet`` and ``nCst``
    counters, ``Jet_<field>`` and ``Cst_<field>`` columns.
    """

    INT_COLUMNS = ("JetNCst", "JetID", "JetMatchID", "CstID", "CstSource")

    def __init__(self, tree_name):
        self.tree_name = tree_name
        self.rows = []

    def commit(self, record):
        self.rows.append(record.to_columns())

    def __len__(self):
        return len(self.rows)

    def _dtype(self, key):
        return np.int64 if key in self.INT_COLUMNS else np.float64

    def arrays(self):
        if not self.rows:
            return {}
        jet_keys = [k for k in self.rows[0] if k.startswith("Jet")]
        cst_keys = [k for k in self.rows[0] if k.startswith("Cst")]
        scalar_keys = [k for k in self.rows[0] if k not in jet_keys and k not in cst_keys]

        out = {}
        for k in scalar_keys:
            out[k] = np.asarray([r[k] for r in self.rows])

        njet = np.asarray([len(r[jet_keys[0]]) for r in self.rows], dtype=np.int64)
        out["Jet"] = ak.zip({
            k[len("Jet"):]: ak.unflatten(
                np.asarray([x for r in self.rows for x in r[k]], dtype=self._dtype(k)), njet)
            for k in jet_keys
        })

        ncst = np.asarray([sum(len(sub) for sub in r[cst_keys[0]]) for r in self.rows], dtype=np.int64)
        out["Cst"] = ak.zip({
            k[len("Cst"):]: ak.unflatten(
                np.asarray([x for r in self.rows for sub in r[k] for x in sub], dtype=self._dtype(k)), ncst)
            for k in cst_keys
        })
        return out

    def write(self, fout):
        arrays = self.arrays()
        if not arrays:
            return 0
        branch_types = {
            k: (v.type.content if isinstance(v, ak.Array) else v.dtype) for k, v in arrays.items()
        }
        tree = fout.mktree(
            self.tree_name, branch_types,
            counter_name=lambda counted: "n" + counted,
            field_name=lambda outer, inner: inner if outer == "" else f"{outer}_{inner}",
        )
        tree.extend(arrays)
        return len(self.rows)
