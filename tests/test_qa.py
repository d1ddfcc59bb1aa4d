"""QA aggregation, merging and the run-end dump."""

import numpy as np
import pytest

from jettree.pool import SourceKind
from jettree.qa import Hist1D, ObjectKind, QAAggregator


def test_hist_under_overflow():
    h = Hist1D(np.linspace(0.0, 10.0, 11))
    h.fill([-1.0, 0.0, 5.5, 10.0, 11.0, np.nan])
    assert h.entries == 5
    assert h.underflow == 1.0
    assert h.overflow == 1.0
    assert h.counts[0] == 1.0
    assert h.counts[5] == 1.0
    # the upper edge falls in the last bin
    assert h.counts[-1] == 1.0
    assert h.total == 5.0


def test_counters_are_monotonic():
    qa = QAAggregator()
    qa.count_seen(ObjectKind.TRACK, 3)
    qa.count_accepted(ObjectKind.TRACK, 1.0, 0.0, 0.0, 1.5)
    qa.count_accepted(ObjectKind.TRACK, 2.0, 0.5, 1.0, 2.5)

    c = qa.counters[ObjectKind.TRACK]
    assert (c.seen, c.accepted) == (3, 2)
    assert c.energy_sum == pytest.approx(4.0)
    assert qa.object_qa[ObjectKind.TRACK]["pt"].entries == 2


def test_custom_bins():
    qa = QAAggregator(bins={"pt": [0.0, 1.0, 2.0]})
    assert len(qa.object_qa[ObjectKind.FLOW]["pt"].counts) == 2
    assert len(qa.object_qa[ObjectKind.FLOW]["eta"].counts) == 200


def test_merge():
    a, b = QAAggregator(), QAAggregator()
    for qa in (a, b):
        qa.count_seen(ObjectKind.PART, 2)
        qa.count_accepted(ObjectKind.PART, 1.0, 0.0, 0.0, 1.0)
        qa.fill_collection(SourceKind.PARTICLE, 2, 1, 1.0)
        qa.events_seen += 1
        qa.views_committed["truth"] += 1
    a.merge(b)

    assert a.counters[ObjectKind.PART].seen == 4
    assert a.counters[ObjectKind.PART].accepted == 2
    assert a.object_qa[ObjectKind.PART]["pt"].entries == 2
    assert a.num_seen[SourceKind.PARTICLE].entries == 2
    assert a.events_seen == 2
    assert a.views_committed["truth"] == 2


def test_finalize_writes_npz(tmp_path):
    qa = QAAggregator()
    qa.count_seen(ObjectKind.RJET)
    qa.count_accepted(ObjectKind.RJET, 12.0, 0.1, 0.2, 13.0)
    qa.fill_jet("reco", 0.0, 3)
    summary = qa.finalize(str(tmp_path), "qa.npz")

    assert qa.finalized
    assert summary["objects"]["RJET"]["accepted"] == 1
    data = np.load(tmp_path / "qa.npz")
    assert data["hObjectQA__RJET__pt__counts"].sum() == 1
    assert data["hJetNumCst__reco__counts"].sum() == 1
    assert list(data["counter_kind"]) == [k.name for k in ObjectKind]
    assert "RJET" in qa.report()


def test_finalize_without_output():
    summary = QAAggregator().finalize()
    assert summary["events_seen"] == 0
