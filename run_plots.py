# run_plots.py
import os
import argparse
import numpy as np

from jettree.config import config_tag_from_path, load_cfg_from_path
from jettree.plotting_utils import plot_acceptance_summary, plot_hist_overlay, plot_hist_step
from jettree.qa import INFO, ObjectKind
from jettree.utils import ensure_dir

XLABELS = {
    "pt": r"$p_T$ [GeV/c]",
    "eta": r"$\eta$",
    "phi": r"$\varphi$",
    "ene": r"$E$ [GeV]",
}


def parse_args():
    ap = argparse.ArgumentParser(description="Make QA plots from cached processing outputs.")
    ap.add_argument("--config", "-c", default="config.py",
                    help="Path to config file, e.g. configs/example_config.py (default: config.py)")
    return ap.parse_args()


def load_qa(cache_dir, fname):
    f = os.path.join(cache_dir, fname)
    if not os.path.exists(f):
        raise RuntimeError(f"Missing QA cache: {f} (run run_processing.py first)")
    return np.load(f)


def get_hist(qa, name):
    return qa[f"{name}__edges"], qa[f"{name}__counts"]


def run(cfg, cfg_tag: str):
    out_root = os.path.join(getattr(cfg, "OUTDIR", "outputs"), cfg_tag)
    qa_file = getattr(cfg, "OUTPUT", {}).get("qa_file", "qa_histograms.npz")
    labels = dict(getattr(cfg, "PLOT_LABELS", {}))
    lab_kw = {k: labels[k] for k in ("exp", "llabel", "rlabel") if k in labels}

    for proc, pinfo in cfg.PROCESSES.items():
        proc_label = pinfo.get("label", proc)
        cache_dir = os.path.join(out_root, proc, "cache")
        plot_dir = os.path.join(out_root, proc, "plots")
        ensure_dir(plot_dir)
        print(f"\n=== PLOTS: {proc} | cache: {cache_dir} ===")

        qa = load_qa(cache_dir, qa_file)

        # per-object kinematics
        for kind in ObjectKind:
            for info in INFO:
                edges, counts = get_hist(qa, f"hObjectQA__{kind.name}__{info}")
                if np.sum(counts) <= 0:
                    continue
                plot_hist_step(
                    edges, counts,
                    os.path.join(plot_dir, f"objectqa__{kind.name.lower()}__{info}.png"),
                    xlabel=XLABELS[info],
                    title=f"{proc_label}\n{kind.name}",
                    logy=(info in ("pt", "ene")),
                    **lab_kw,
                )

        # truth vs reco jets
        for info in INFO:
            hists = {
                "truth jets": get_hist(qa, f"hObjectQA__TJET__{info}"),
                "reco jets": get_hist(qa, f"hObjectQA__RJET__{info}"),
            }
            plot_hist_overlay(
                hists,
                os.path.join(plot_dir, f"jets_truth_vs_reco__{info}.png"),
                xlabel=XLABELS[info],
                title=proc_label,
                colors=["black", "#2563eb"],
                density=True,
                **lab_kw,
            )

        hists = {view: get_hist(qa, f"hJetNumCst__{view}") for view in ("truth", "reco")}
        plot_hist_overlay(
            hists,
            os.path.join(plot_dir, "jets_num_cst.png"),
            xlabel=r"$N_{cst}$",
            ylabel="Jets",
            title=proc_label,
            colors=["black", "#2563eb"],
            **lab_kw,
        )

        plot_acceptance_summary(
            [str(k) for k in qa["counter_kind"]],
            qa["counter_seen"],
            qa["counter_accepted"],
            os.path.join(plot_dir, "acceptance_summary.png"),
            title=proc_label,
            **lab_kw,
        )

        print(f"Plots written to: {plot_dir}")

    print("\nAll plots done.")


if __name__ == "__main__":
    args = parse_args()
    cfg = load_cfg_from_path(args.config)
    tag = config_tag_from_path(args.config)
    run(cfg, tag)
