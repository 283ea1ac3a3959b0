import logging

from flow import ERROR, FlowTracker


def test_steps_are_logged_under_session_id(caplog):
    tracker = FlowTracker()

    with caplog.at_level(logging.INFO, logger="metadata_flow"):
        session_id = tracker.start()
        tracker.step(session_id, "image_uploaded", ipfs_hash="Qm1")
        tracker.step(session_id, "metadata_upload_failed", ERROR, error="boom")

    messages = [r.getMessage() for r in caplog.records]
    assert all(m.startswith(f"[{session_id}]") for m in messages)
    assert messages[1] == f'[{session_id}] image_uploaded (success) {{"ipfs_hash": "Qm1"}}'
    assert caplog.records[2].levelno == logging.ERROR


def test_resume_accepts_only_well_formed_ids():
    tracker = FlowTracker()

    assert tracker.resume("launch-1234") == "launch-1234"
    assert tracker.resume("short") != "short"
    assert tracker.resume(None) != tracker.resume(None)
