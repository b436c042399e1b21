from bidscoin_wrangler import utils


MEMINFO = """\
MemTotal:       16318480 kB
MemFree:          524288 kB
MemAvailable:    8388608 kB
Buffers:          262144 kB
Cached:          7340032 kB
"""

VM_STAT = """\
Mach Virtual Memory Statistics: (page size of 16384 bytes)
Pages free:                               65536.
Pages active:                            400000.
Pages inactive:                          262144.
Pages speculative:                        65536.
Pages throttled:                              0.
Pages wired down:                        150000.
"""


def test_meminfo_uses_available_not_free():
    assert utils.meminfo_available_bytes(MEMINFO) == 8388608 * 1024
    assert utils.meminfo_available_bytes("MemFree: 524288 kB\n") is None


def test_available_memory_from_meminfo_file(tmp_path):
    meminfo = tmp_path / "meminfo"
    meminfo.write_text(MEMINFO)
    assert utils.available_memory_gb(meminfo, system="Linux") == 8


def test_available_memory_missing_meminfo_falls_back(tmp_path, monkeypatch):
    monkeypatch.setattr(utils, "_sysconf_available_bytes", lambda: 3 * 1024**3)
    assert utils.available_memory_gb(tmp_path / "missing", system="Linux") == 3


def test_available_memory_unknown(tmp_path, monkeypatch):
    monkeypatch.setattr(utils, "_sysconf_available_bytes", lambda: None)
    assert utils.available_memory_gb(tmp_path / "missing", system="Linux") is None


def test_vm_stat_counts_reclaimable_pages():
    assert utils.vm_stat_available_bytes(VM_STAT) == (65536 + 262144 + 65536) * 16384
    assert utils.vm_stat_available_bytes("Pages free: 10.\n") is None
    assert utils.vm_stat_available_bytes("(page size of 4096 bytes)\n") is None


def test_free_disk_gb_uses_existing_parent(tmp_path):
    assert utils.free_disk_gb(tmp_path / "not" / "yet" / "created") >= 0
