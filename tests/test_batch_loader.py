import json

import pytest

from eventfeed.orchestrator.batch_loader import load_batches


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_batches_skips_disabled(tmp_path):
    path = _write(
        tmp_path / "batches.json",
        {
            "venues": [
                {
                    "venueId": "crooked-lane",
                    "venue": {"name": "Crooked Lane", "city": "Auburn"},
                    "records": [{"title": "Trivia Night", "date": "Every Thursday", "startTime": "7pm"}],
                },
                {"venueId": "closed", "venue": {"name": "Closed Bar"}, "enabled": False},
            ]
        },
    )
    batches = load_batches(path)
    assert [batch.venue_id for batch in batches] == ["crooked-lane"]
    batch = batches[0]
    assert batch.venue_name == "Crooked Lane"
    assert batch.records[0].start_time == "7pm"
    assert not batch.failed
    assert len(load_batches(path, include_disabled=True)) == 2


def test_load_batches_accepts_plain_list(tmp_path):
    path = _write(
        tmp_path / "batches.json",
        [{"venue_id": "goat-house", "venue_name": "Goathouse", "venue": {"name": "Goat House"}, "error": "timeout"}],
    )
    batch = load_batches(path)[0]
    assert batch.venue_name == "Goathouse"
    assert batch.failed


def test_invalid_batch_names_venue(tmp_path):
    path = _write(tmp_path / "batches.json", {"venues": [{"venueId": "broken", "venue": {}}]})
    with pytest.raises(ValueError, match="broken"):
        load_batches(path)


def test_duplicate_venue_rejected(tmp_path):
    row = {"venueId": "twice", "venue": {"name": "Twice"}}
    path = _write(tmp_path / "batches.json", {"venues": [row, row]})
    with pytest.raises(ValueError, match="Duplicate"):
        load_batches(path)


def test_undecodable_document(tmp_path):
    path = tmp_path / "batches.json"
    path.write_text("[", encoding="utf-8")
    with pytest.raises(ValueError):
        load_batches(path)
