import pytest

from bidscoin_wrangler.registry import (
    EnvironmentRegistry,
    EnvironmentRecord,
    IsolationMode,
    RecordState,
)
from bidscoin_wrangler.versions import VersionSelector, parse_selector
from bidscoin_wrangler.utils import NotFoundError


@pytest.fixture
def registry(config):
    return EnvironmentRegistry(config)


def make_record(registry, name="bidscoin_v4.6.2", tag="4.6.2", **keys):
    record = EnvironmentRecord(
        name=name,
        selector=parse_selector(tag),
        source_ref=tag,
        record_dir=registry.record_dir(name),
        **keys,
    )
    record.install_path.mkdir(parents=True)
    record.env_path.mkdir(parents=True)
    registry.save(record)
    return record


def test_empty_registry_lists_nothing(registry):
    assert registry.list() == []
    assert registry.current_name() is None
    assert registry.current() is None


def test_save_and_load_round_trip(registry):
    record = make_record(
        registry,
        name="bidscoin_main_20250203_abc1234",
        tag="latest",
        branch="main",
        commit="abc1234",
        commit_date="20250203",
        isolation=IsolationMode.STANDALONE,
    )
    assert record.state is RecordState.READY
    loaded = registry.load(record.name)
    assert loaded.selector == VersionSelector.latest()
    assert loaded.source_ref == "latest"
    assert loaded.commit_date == "20250203"
    assert loaded.isolation is IsolationMode.STANDALONE
    assert loaded.install_path == record.install_path
    assert loaded.env_path == record.env_path
    assert loaded.created


def test_list_skips_incomplete_records(registry):
    make_record(registry, "bidscoin_v4.6.2", "4.6.2")
    make_record(registry, "bidscoin_v4.6.1", "4.6.1")
    (registry.envs_dir / "bidscoin_v4.5.0" / "source").mkdir(parents=True)
    assert [r.name for r in registry.list()] == ["bidscoin_v4.6.1", "bidscoin_v4.6.2"]


def test_current_pointer(registry):
    first = make_record(registry, "bidscoin_v4.6.1", "4.6.1")
    second = make_record(registry, "bidscoin_v4.6.2", "4.6.2")
    registry.set_current(second)
    assert registry.current_name() == second.name
    flags = {r.name: r.is_current for r in registry.list()}
    assert flags == {first.name: False, second.name: True}


def test_remove_clears_pointer(registry):
    record = make_record(registry)
    registry.set_current(record)
    registry.remove(record)
    assert not record.record_dir.exists()
    assert record.state is RecordState.REMOVED
    assert registry.current_name() is None
    assert registry.list() == []


def test_remove_keeps_other_pointer(registry):
    first = make_record(registry, "bidscoin_v4.6.1", "4.6.1")
    second = make_record(registry, "bidscoin_v4.6.2", "4.6.2")
    registry.set_current(second)
    registry.remove(first)
    assert registry.current_name() == second.name


def test_remove_missing_record(registry):
    record = EnvironmentRecord(
        name="bidscoin_v1.0.0",
        selector=parse_selector("1.0.0"),
        source_ref="1.0.0",
        record_dir=registry.record_dir("bidscoin_v1.0.0"),
    )
    with pytest.raises(NotFoundError):
        registry.remove(record)


def test_remove_all(registry):
    make_record(registry, "bidscoin_v4.6.1", "4.6.1")
    record = make_record(registry, "bidscoin_v4.6.2", "4.6.2")
    registry.set_current(record)
    assert registry.remove_all() == 2
    assert registry.list() == []
    assert registry.current_name() is None


def test_dangling_pointer(registry):
    record = make_record(registry)
    registry.set_current(record)
    registry.remove_all()
    registry.current_file.write_text(record.name)
    assert registry.current() is None
