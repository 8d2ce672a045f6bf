"""
Integration tests for the complete registry -> ROA dataset flow
"""

import pytest
import os
import tempfile
import shutil
import logging
import ujson as json
from datetime import datetime, timezone
from freezegun import freeze_time

from generator import generate, process_directory, assemble_dataset, load_filters, main
from models import ROAEntry, AFI4, AFI6
from storage import route_dir

FROZEN = "2024-01-15 10:30:45"
FROZEN_TS = 1705314645
WEEK = 7 * 24 * 3600

FILTER_TXT = """\
# seq action prefix min max comment
1 permit 10.0.0.0/8      16 24 private
2 deny   192.168.0.0/16  16 32 rfc1918
"""

FILTER6_TXT = """\
1 permit 2001:db8::/32 32 64 documentation
"""

ROUTES = {
    "10.1.0.0_20": "route: 10.1.0.0/20\norigin: AS100\n",
    "10.2.0.0_20": "route: 10.2.0.0/20\norigin: AS200\norigin: as201\nmax-length: 30\n",
    "10.3.0.0_25": "route: 10.3.0.0/25\norigin: AS300\n",
    "192.0.2.0_24": "route: 192.0.2.0/24\norigin: AS400\n",
    "192.168.0.0_16": "route: 192.168.0.0/16\norigin: AS500\n",
    "bad": "origin: AS600\n",
}

ROUTES6 = {
    "2001:db8::_48": "route6: 2001:db8::/48\norigin: AS300\n",
}

EXPECTED_ROAS = [
    {"prefix": "10.1.0.0/20", "maxLength": 24, "asn": "AS100"},
    {"prefix": "10.2.0.0/20", "maxLength": 24, "asn": "AS200"},
    {"prefix": "10.2.0.0/20", "maxLength": 24, "asn": "AS201"},
    {"prefix": "2001:db8::/48", "maxLength": 64, "asn": "AS300"},
]


def write_registry(root, filter_txt=FILTER_TXT, filter6_txt=FILTER6_TXT, routes=ROUTES, routes6=ROUTES6):
    data = os.path.join(root, "data")
    for sub, objs in (("route", routes), ("route6", routes6)):
        d = os.path.join(data, sub)
        os.makedirs(d, exist_ok=True)
        for name, text in objs.items():
            with open(os.path.join(d, name), "w") as f:
                f.write(text)
    with open(os.path.join(data, "filter.txt"), "w") as f:
        f.write(filter_txt)
    with open(os.path.join(data, "filter6.txt"), "w") as f:
        f.write(filter6_txt)


class TestEndToEndFlow:
    """Build a registry on disk and run the whole pipeline"""

    def setup_method(self):
        self.tmpdir = tempfile.mkdtemp()
        self.registry = os.path.join(self.tmpdir, "registry")
        self.output = os.path.join(self.tmpdir, "out", "roa.json")
        write_registry(self.registry)

    def teardown_method(self):
        shutil.rmtree(self.tmpdir)

    @freeze_time(FROZEN, tz_offset=0)
    def test_generate(self):
        ds = generate(self.registry)
        data = ds.serialize()
        assert data["roas"] == EXPECTED_ROAS
        assert data["metadata"] == {"counts": 4, "generated": FROZEN_TS, "valid": FROZEN_TS + WEEK}

    def test_per_record_errors_logged(self, caplog):
        with caplog.at_level(logging.ERROR):
            generate(self.registry)
        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert len(messages) == 2
        assert any("192.0.2.0" in m and "invalid range" in m for m in messages)
        assert any(m.startswith("Failed to process") and "bad" in m for m in messages)

    def test_silent_drops_not_logged(self, caplog):
        with caplog.at_level(logging.ERROR):
            generate(self.registry)
        text = caplog.text
        assert "192.168.0.0" not in text
        assert "10.3.0.0" not in text

    def test_subdirectory_is_per_record_error(self, caplog):
        os.makedirs(os.path.join(route_dir(self.registry, AFI4), "nested"))
        with caplog.at_level(logging.ERROR):
            ds = generate(self.registry)
        assert ds.counts == 4
        assert any("nested" in r.getMessage() for r in caplog.records)

    def test_ipv4_before_ipv6(self):
        roas = generate(self.registry).roas
        assert roas[-1].prefix == "2001:db8::/48"

    def test_workers_same_output(self):
        now = datetime(2024, 1, 15, tzinfo=timezone.utc)
        a = generate(self.registry, workers=1, now=now).serialize()
        b = generate(self.registry, workers=4, now=now).serialize()
        assert a == b

    def test_process_directory(self):
        tables = load_filters(self.registry)
        roas = process_directory(route_dir(self.registry, AFI6), tables)
        assert roas == [ROAEntry(prefix="2001:db8::/48", max_length=64, asn="AS300")]

    def test_missing_route_dir_is_fatal(self):
        shutil.rmtree(route_dir(self.registry, AFI6))
        with pytest.raises(OSError):
            generate(self.registry)

    def test_missing_filter_is_fatal(self):
        os.remove(os.path.join(self.registry, "data", "filter6.txt"))
        with pytest.raises(OSError):
            generate(self.registry)

    def test_malformed_filter_lines_skipped(self):
        shutil.rmtree(self.registry)
        write_registry(self.registry, filter_txt="1 permit nonsense 8 24 x\n" + FILTER_TXT)
        assert generate(self.registry).counts == 4


class TestAssembleDataset:
    def test_validity_window(self):
        now = datetime(2024, 1, 15, 10, 30, 45, 900000, tzinfo=timezone.utc)
        ds = assemble_dataset([ROAEntry("10.0.0.0/8", 8, "AS1")], now)
        assert ds.generated == FROZEN_TS
        assert ds.valid - ds.generated == WEEK
        assert ds.counts == 1

    @freeze_time(FROZEN, tz_offset=0)
    def test_defaults_to_now(self):
        ds = assemble_dataset([])
        assert ds.generated == FROZEN_TS
        assert ds.serialize()["metadata"]["counts"] == 0


class TestCommandLine:
    def setup_method(self):
        self.tmpdir = tempfile.mkdtemp()
        self.registry = os.path.join(self.tmpdir, "registry")
        self.output = os.path.join(self.tmpdir, "roa.json")
        write_registry(self.registry)

    def teardown_method(self):
        shutil.rmtree(self.tmpdir)

    @freeze_time(FROZEN, tz_offset=0)
    def test_writes_output(self):
        main([self.registry, self.output])
        with open(self.output) as f:
            data = json.load(f)
        assert data == {
            "metadata": {"counts": 4, "generated": FROZEN_TS, "valid": FROZEN_TS + WEEK},
            "roas": EXPECTED_ROAS,
        }

    @freeze_time(FROZEN, tz_offset=0)
    def test_idempotent(self):
        main([self.registry, self.output])
        with open(self.output, "rb") as f:
            first = f.read()
        main([self.registry, self.output])
        with open(self.output, "rb") as f:
            second = f.read()
        assert first == second

    @freeze_time(FROZEN, tz_offset=0)
    def test_pretty(self):
        main([self.registry, self.output, "--pretty"])
        with open(self.output) as f:
            content = f.read()
        assert "\n" in content
        assert json.loads(content)["metadata"]["counts"] == 4

    def test_wrong_arity(self):
        with pytest.raises(SystemExit) as exc:
            main([self.registry])
        assert exc.value.code != 0
        with pytest.raises(SystemExit) as exc:
            main([self.registry, self.output, "extra"])
        assert exc.value.code != 0

    def test_missing_registry_exits_nonzero(self):
        with pytest.raises(SystemExit) as exc:
            main([os.path.join(self.tmpdir, "nope"), self.output])
        assert exc.value.code == 1
        assert not os.path.exists(self.output)

    def test_env_workers(self, monkeypatch):
        monkeypatch.setenv("ROA_WORKERS", "3")
        main([self.registry, self.output])
        with open(self.output) as f:
            assert json.load(f)["roas"] == EXPECTED_ROAS
