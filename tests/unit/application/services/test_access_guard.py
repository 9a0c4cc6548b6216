"""Tests for public-internet access detection and the tripwire."""

import json
import threading

import pytest

from reelvault.application.services.access_guard import (
    check_allow_public_without_auth,
    check_external_access_tripwire,
    parse_ip,
    record_external_access_tripwire,
    split_host_port,
)
from reelvault.domain.exceptions import (
    AccessPolicyError,
    ExternalAccessError,
    MalformedAddressError,
)

TRIPWIRE_KEY = "security_tripwire_accessed_from_public_internet"


@pytest.fixture
def config(make_config, configured_values):
    """Configured system without credentials."""
    return make_config(configured_values)


class TestDirectAddress:
    """Requests without X-Forwarded-For."""

    @pytest.mark.parametrize(
        "remote_addr",
        [
            "192.168.1.1:8080",
            "10.0.0.5:8080",
            "172.16.4.2:8080",
            "100.64.0.1:8080",
            "127.0.0.1:8080",
            "[::1]:8080",
            "[fe80::c081:1c1a:ae39:d3c3%Ethernet 5]:8080",
            "[fd00::1]:8080",
            "[::ffff:192.168.1.1]:8080",
        ],
    )
    def test_local_addresses_allowed(self, config, remote_addr):
        check_allow_public_without_auth(config, remote_addr)

    @pytest.mark.parametrize(
        ("remote_addr", "expected"),
        [
            ("193.168.1.1:8080", "193.168.1.1"),
            (
                "[2002:9fc4:ed97:e472:5170:5766:520c:c901]:8080",
                "2002:9fc4:ed97:e472:5170:5766:520c:c901",
            ),
        ],
    )
    def test_public_addresses_rejected(self, config, remote_addr, expected):
        with pytest.raises(ExternalAccessError) as exc_info:
            check_allow_public_without_auth(config, remote_addr)
        assert exc_info.value.address == expected

    @pytest.mark.parametrize("remote_addr", ["192.168.1.a:9999", "192.168.1.1"])
    def test_malformed_addresses(self, config, remote_addr):
        with pytest.raises(MalformedAddressError):
            check_allow_public_without_auth(config, remote_addr)

    def test_error_kinds_are_distinct(self):
        assert issubclass(ExternalAccessError, AccessPolicyError)
        assert issubclass(MalformedAddressError, AccessPolicyError)
        assert not issubclass(MalformedAddressError, ExternalAccessError)


class TestForwardedChain:
    """Requests that passed through a proxy."""

    def test_all_local_hops_allowed(self, config):
        check_allow_public_without_auth(
            config,
            "127.0.0.1:8080",
            "192.168.1.1, 192.168.1.2, 100.64.0.1, 127.0.0.1",
        )

    @pytest.mark.parametrize(
        "chain",
        ["192.168.1.1, 193.168.1.1", "193.168.1.1, 192.168.1.1"],
    )
    def test_public_hop_rejected(self, config, chain):
        with pytest.raises(ExternalAccessError) as exc_info:
            check_allow_public_without_auth(config, "127.0.0.1:8080", chain)
        assert exc_info.value.address == "193.168.1.1"

    @pytest.mark.parametrize(
        "chain",
        ["192.168.1.1, 193.168.1.1", "193.168.1.1, 192.168.1.1"],
    )
    def test_public_hop_behind_private_peer_rejected(self, config, chain):
        with pytest.raises(ExternalAccessError) as exc_info:
            check_allow_public_without_auth(config, "192.168.1.1:8080", chain)
        assert exc_info.value.address == "193.168.1.1"

    @pytest.mark.parametrize(
        "chain",
        ["192.168.1.1, 193.168.1.1", "193.168.1.1, 192.168.1.1"],
    )
    def test_public_hop_allowed_with_credentials(self, make_config, configured_values, chain):
        config = make_config({**configured_values, "username": "u", "password": "p"})
        check_allow_public_without_auth(config, "192.168.1.1:8080", chain)

    def test_unparseable_hop_is_malformed(self, config):
        with pytest.raises(MalformedAddressError):
            check_allow_public_without_auth(config, "127.0.0.1:8080", "192.168.1.1, nope")

    def test_local_proxy_does_not_hide_public_peer(self, config):
        with pytest.raises(ExternalAccessError):
            check_allow_public_without_auth(config, "193.168.1.1:8080", "192.168.1.1")


class TestOverrides:
    """Credentials or the dangerous override disable the check."""

    def test_credentials_allow_public(self, make_config, configured_values):
        config = make_config({**configured_values, "username": "u", "password": "p"})
        check_allow_public_without_auth(config, "193.168.1.1:8080", "193.168.1.1")

    def test_dangerous_override_allows_public(self, make_config, configured_values):
        config = make_config(
            {**configured_values, "dangerous_allow_public_without_auth": True}
        )
        check_allow_public_without_auth(config, "193.168.1.1:8080")

    def test_dangerous_override_from_env(self, make_config, configured_values):
        config = make_config(
            configured_values,
            env={"REELVAULT_DANGEROUS_ALLOW_PUBLIC_WITHOUT_AUTH": "true"},
        )
        check_allow_public_without_auth(config, "193.168.1.1:8080")


class TestTripwire:
    """Startup reporting and request-time recording."""

    def test_no_tripwire_by_default(self, config):
        assert check_external_access_tripwire(config) is None

    def test_recorded_tripwire_reported(self, make_config, configured_values):
        config = make_config({**configured_values, TRIPWIRE_KEY: "4.4.4.4"})
        err = check_external_access_tripwire(config)
        assert isinstance(err, ExternalAccessError)
        assert err.address == "4.4.4.4"

    def test_tripwire_ignored_with_credentials(self, make_config, configured_values):
        config = make_config(
            {**configured_values, TRIPWIRE_KEY: "4.4.4.4", "username": "u", "password": "p"}
        )
        assert check_external_access_tripwire(config) is None

    def test_tripwire_ignored_with_override(self, make_config, configured_values):
        config = make_config(
            {
                **configured_values,
                TRIPWIRE_KEY: "4.4.4.4",
                "dangerous_allow_public_without_auth": True,
            }
        )
        assert check_external_access_tripwire(config) is None

    def test_cleared_tripwire_not_reported(self, make_config, configured_values):
        config = make_config({**configured_values, TRIPWIRE_KEY: ""})
        assert check_external_access_tripwire(config) is None

    def test_check_never_records(self, config):
        with pytest.raises(ExternalAccessError):
            check_allow_public_without_auth(config, "193.168.1.1:8080")
        assert config.get_security_tripwire_accessed_from_public_internet() == ""

    def test_record_writes_first_address_only(self, config, tmp_path):
        assert record_external_access_tripwire(config, ExternalAccessError("4.4.4.4"))
        assert not record_external_access_tripwire(config, ExternalAccessError("8.8.8.8"))

        written = json.loads((tmp_path / "config" / "config.json").read_text())
        assert written[TRIPWIRE_KEY] == "4.4.4.4"

    def test_record_write_failure_is_logged(self, make_config, configured_values, caplog):
        config = make_config(None)
        config.set("generated", configured_values["generated"])

        with caplog.at_level("ERROR"):
            assert record_external_access_tripwire(config, ExternalAccessError("4.4.4.4"))

        assert "Could not persist external access tripwire" in caplog.text
        assert config.get_security_tripwire_accessed_from_public_internet() == "4.4.4.4"

    def test_concurrent_detections_record_one_address(self, config, tmp_path):
        addresses = [f"4.4.4.{i}" for i in range(1, 9)]
        barrier = threading.Barrier(len(addresses))
        recorded: list[str] = []

        def _detect(address: str) -> None:
            barrier.wait()
            if record_external_access_tripwire(config, ExternalAccessError(address)):
                recorded.append(address)

        threads = [threading.Thread(target=_detect, args=(a,)) for a in addresses]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5.0)

        assert len(recorded) == 1
        written = json.loads((tmp_path / "config" / "config.json").read_text())
        assert written[TRIPWIRE_KEY] == recorded[0]
        assert config.get_security_tripwire_accessed_from_public_internet() == recorded[0]


class TestHelpers:
    """Address parsing helpers."""

    def test_split_ipv6(self):
        assert split_host_port("[::1]:80") == ("::1", "80")

    def test_split_rejects_bare_ipv6(self):
        with pytest.raises(MalformedAddressError):
            split_host_port("::1")

    def test_parse_ip_unmaps_ipv4(self):
        assert str(parse_ip("::ffff:10.0.0.1")) == "10.0.0.1"

