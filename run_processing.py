# run_processing.py
import os
import argparse
import numpy as np
import uproot
from tqdm import tqdm

from jettree.config import JetTreeConfig, config_tag_from_path, load_cfg_from_path
from jettree.driver import EventDriver
from jettree.qa import QAAggregator
from jettree.sources import RootEventReader
from jettree.utils import RootTreeWriter, ensure_dir


def parse_args():
    ap = argparse.ArgumentParser(description="Build truth/reco jet trees and QA caches.")
    ap.add_argument("--config", "-c", default="config.py",
                    help="Path to config file, e.g. configs/example_config.py (default: config.py)")
    return ap.parse_args()


def maybe_tqdm(cfg, it, total=None, desc=None):
    if cfg.RUNTIME.get("use_tqdm", True):
        return tqdm(it, total=total, desc=desc)
    return it


def select_event_indices(cfg, n_total: int) -> np.ndarray:
    max_events = cfg.RUNTIME.get("max_events", None)
    sampling = cfg.RUNTIME.get("event_sampling", "head")
    stride = int(cfg.RUNTIME.get("stride", 1))

    if (max_events is None) or (max_events <= 0) or (max_events >= n_total):
        return np.arange(n_total, dtype=int)

    if sampling == "stride":
        idx = np.arange(0, n_total, stride, dtype=int)
        return idx[:max_events]

    return np.arange(int(max_events), dtype=int)


# -----------------------------
# Main
# -----------------------------
def run(cfg, cfg_tag: str):
    out_root = os.path.join(getattr(cfg, "OUTDIR", "outputs"), cfg_tag)
    ensure_dir(out_root)

    jcfg = JetTreeConfig.from_module(cfg)
    out_cfg = {
        "file": "jet_trees.root",
        "truth_tree": "TruthJetTree",
        "reco_tree": "RecoJetTree",
        "qa_file": "qa_histograms.npz",
        **jcfg.output,
    }
    print(f"Jets: {jcfg.jets.algorithm.value} R={jcfg.jets.R} {jcfg.jets.scheme.value}-scheme "
          f"({jcfg.jets.jet_type}, backend={jcfg.jets.backend}) | sources: {jcfg.enabled_sources} "
          f"| MC: {jcfg.is_mc}")

    for proc, pinfo in cfg.PROCESSES.items():
        path = pinfo["path"]
        print(f"\n=== PROCESS: {proc} | file: {path} | config: {cfg_tag} ===")

        reader = RootEventReader(path, cfg.TREE_NAME, cfg.BRANCHES)
        n_total = len(reader)
        ev_idx = select_event_indices(cfg, n_total)
        print(f"Loaded {n_total} events (processing {len(ev_idx)})")

        out_proc = os.path.join(out_root, proc)
        out_cache = os.path.join(out_proc, "cache")
        ensure_dir(out_cache)

        qa = QAAggregator(jcfg.qa_bins)
        truth_writer = RootTreeWriter(out_cfg["truth_tree"])
        reco_writer = RootTreeWriter(out_cfg["reco_tree"])
        driver = EventDriver(jcfg, qa, truth_sink=truth_writer, reco_sink=reco_writer)

        for ievt in maybe_tqdm(cfg, ev_idx, total=len(ev_idx), desc=f"{proc}"):
            driver.process_event(reader.event(int(ievt)), int(ievt))

        print("Writing output trees...")
        out_file = os.path.join(out_proc, out_cfg["file"])
        with uproot.recreate(out_file) as fout:
            n_truth = truth_writer.write(fout)
            n_reco = reco_writer.write(fout)
        print(f"  {out_cfg['truth_tree']}: {n_truth} entries")
        print(f"  {out_cfg['reco_tree']}: {n_reco} entries")

        qa.finalize(out_cache, out_cfg["qa_file"])
        print(qa.report())

        print(f"Done processing {proc}. Trees in: {out_file} | QA cache in: {out_cache}")

    print("\nAll processing done.")


if __name__ == "__main__":
    args = parse_args()
    cfg = load_cfg_from_path(args.config)
    tag = config_tag_from_path(args.config)
    run(cfg, tag)
