"""Command line tests."""

import json
from unittest.mock import Mock

import pytest

from joinpatch import cli, codec
from joinpatch.resolver import ExternalAddressResolver


PUBLIC = "203.0.113.9"


@pytest.fixture
def resolver(monkeypatch, tmp_path):
    """Patch out logging setup and the network-backed resolver."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("JOINPATCH_CONFIG", raising=False)

    stub = Mock(spec=ExternalAddressResolver)
    stub.resolve.return_value = PUBLIC
    stub.resolve_or_raise.return_value = PUBLIC

    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "configure_default_resolver", lambda **kwargs: stub)
    return stub


def _first_address(text):
    return codec.payload_to_dict(codec.decode(text))["connection_groups"][0][0]["address"]


class TestRewriteCommand:

    def test_explicit_address(self, resolver, lan_payload, capsys):
        assert cli.main(["rewrite", lan_payload, "--address", "198.51.100.4"]) == 0

        out = capsys.readouterr().out.strip()
        assert _first_address(out) == "198.51.100.4"
        resolver.resolve_or_raise.assert_not_called()

    def test_resolved_address(self, resolver, lan_payload, capsys):
        assert cli.main(["rewrite", lan_payload]) == 0
        assert _first_address(capsys.readouterr().out.strip()) == PUBLIC

    def test_invalid_address_fails(self, resolver, lan_payload, capsys):
        assert cli.main(["rewrite", lan_payload, "-a", "1.2.3"]) == 2
        assert capsys.readouterr().out == ""

    def test_undecodable_payload_fails(self, resolver, capsys):
        assert cli.main(["rewrite", "@@@@", "-a", PUBLIC]) == 2


class TestUrlCommand:

    def test_payload(self, resolver, lan_payload, capsys):
        assert cli.main(["url", lan_payload]) == 0
        out = capsys.readouterr().out.strip()
        assert out.startswith("https://play.sunderfolk.com/?join=")
        assert out.endswith("&p=2")

    def test_full_url(self, resolver, lan_payload, capsys):
        url = f"https://play.sunderfolk.com/?join={lan_payload}&p=2"
        assert cli.main(["url", url]) == 0
        assert capsys.readouterr().out.strip() != url


class TestInspectionCommands:

    def test_dump_stdout(self, resolver, lan_payload, capsys):
        assert cli.main(["dump", lan_payload]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["connection_groups"] == [[{"address": "192.168.1.50", "port": 7777}]]

    def test_dump_file(self, resolver, lan_payload, tmp_path):
        out = tmp_path / "join.json"
        assert cli.main(["dump", lan_payload, "-o", str(out)]) == 0
        assert json.loads(out.read_text())["connection_groups"][0][0]["port"] == 7777

    def test_analyze(self, resolver, lan_payload, capsys):
        assert cli.main(["analyze", lan_payload]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["local_address"] == "192.168.1.50"
        assert data["external_address"] == PUBLIC

    def test_ports(self, resolver, lan_payload, capsys):
        assert cli.main(["ports", lan_payload]) == 0
        assert capsys.readouterr().out.strip() == "7777 (schema)"

    def test_ports_not_found(self, resolver, make_payload, tmp_path, capsys):
        config = tmp_path / "narrow.yaml"
        config.write_text("ports:\n  bands:\n    - 60000-60001\n")
        text = make_payload([[[bytes([8, 8, 8, 8]), 80]]], token=0)

        assert cli.main(["-c", str(config), "ports", text]) == 1
        assert capsys.readouterr().out.strip() == "-1"


class TestResolveCommand:

    def test_prints_address(self, resolver, capsys):
        assert cli.main(["resolve"]) == 0
        assert capsys.readouterr().out.strip() == PUBLIC

    def test_no_provider(self, resolver, capsys):
        resolver.resolve.return_value = None
        assert cli.main(["resolve"]) == 1
        assert capsys.readouterr().out == ""


def test_command_required(resolver):
    with pytest.raises(SystemExit):
        cli.main([])
