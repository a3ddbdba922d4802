import logging
from dcb.MANAGERS.image_cleanup import ImageCleanup
from dcb.MODELS.resolved_images import RunState


def make_state():
    state = RunState()
    state.record_built("bundles/example/web:0.0.1")
    state.record_pulled("redis:7-alpine")
    state.record_pulled("postgres:15")
    return state


def test_default_prefix_keeps_built_images(fake_engine):
    failed = ImageCleanup(fake_engine).run(make_state())

    assert failed == []
    assert fake_engine.removed == ["redis:7-alpine", "postgres:15"]


def test_matching_prefix_removes_built_images(fake_engine):
    ImageCleanup(fake_engine, built_image_prefix="bundles/").run(make_state())

    assert fake_engine.removed == ["bundles/example/web:0.0.1", "redis:7-alpine", "postgres:15"]


def test_legacy_prefix_match(fake_engine):
    state = RunState()
    state.record_built("bundled-web")

    ImageCleanup(fake_engine).run(state)

    assert fake_engine.removed == ["bundled-web"]


def test_failures_are_logged_and_skipped(make_engine, caplog):
    engine = make_engine(fail_remove={"redis:7-alpine"})

    with caplog.at_level(logging.WARNING, logger="dcb"):
        failed = ImageCleanup(engine).run(make_state())

    assert failed == ["redis:7-alpine"]
    assert engine.removed == ["postgres:15"]
    assert "Failed to remove freshly pulled image redis:7-alpine" in caplog.text


def test_nothing_to_clean(fake_engine):
    assert ImageCleanup(fake_engine).run(RunState()) == []
    assert fake_engine.calls == []
