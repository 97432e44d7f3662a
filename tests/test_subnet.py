import ipaddress

import pytest

from geoiplookup.subnet import (
    AddressFamily,
    derive_subnet_key,
    family_for_tag,
    mask_to_prefix,
    parse_address,
)


def test_derive_subnet_key_power_of_two():
    assert derive_subnet_key("192.0.0.0", 256, 32) == "192.0.0.0/24"
    assert derive_subnet_key("3.0.0.0", 2 ** 24, 32) == "3.0.0.0/8"
    assert derive_subnet_key("10.0.0.1", 1, 32) == "10.0.0.1/32"


def test_derive_subnet_key_truncates_other_counts():
    # 768 hosts: floor(log2(768)) == 9
    assert derive_subnet_key("1.0.0.0", 768, 32) == "1.0.0.0/23"


@pytest.mark.parametrize("count", [0, -256, 2 ** 33])
def test_derive_subnet_key_rejects_bad_counts(count):
    with pytest.raises(ValueError):
        derive_subnet_key("1.0.0.0", count, 32)


def test_mask_to_prefix_ipv4():
    assert mask_to_prefix("10.1.2.3", 16, 32) == "10.1.0.0/16"
    assert mask_to_prefix("10.1.2.3", 0, 32) == "0.0.0.0/0"
    assert mask_to_prefix("10.1.2.3", 32, 32) == "10.1.2.3/32"
    assert mask_to_prefix(ipaddress.IPv4Address("10.1.2.3"), 12, 32) == "10.0.0.0/12"


def test_mask_to_prefix_ipv6():
    assert mask_to_prefix("2001:db8:abcd::1", 32, 128) == "2001:db8::/32"
    assert mask_to_prefix("2001:250:1::1", 35, 128) == "2001:250::/35"
    assert mask_to_prefix("2001:db8::1", 0, 128) == "::/0"


@pytest.mark.parametrize("address,prefix_length,bit_width", [
    ("10.1.2.3", 33, 32),
    ("10.1.2.3", -1, 32),
    ("10.1.2.3", 24, 128),
])
def test_mask_to_prefix_rejects_invalid(address, prefix_length, bit_width):
    with pytest.raises(ValueError):
        mask_to_prefix(address, prefix_length, bit_width)


def test_family_for_tag():
    assert family_for_tag("ipv4") is AddressFamily.V4
    assert family_for_tag("ipv6") is AddressFamily.V6
    assert family_for_tag("asn") is None
    assert AddressFamily.V4.bit_width == 32
    assert AddressFamily.V6.partition == "ipv6"


def test_parse_address():
    assert parse_address("10.1.2.3") == (AddressFamily.V4, ipaddress.IPv4Address("10.1.2.3"))
    assert parse_address("2001:db8::1") == (AddressFamily.V6, ipaddress.IPv6Address("2001:db8::1"))


def test_parse_address_ipv4_mapped():
    assert parse_address("::ffff:10.1.2.3") == (AddressFamily.V4, ipaddress.IPv4Address("10.1.2.3"))


@pytest.mark.parametrize("text", ["", " 10.1.2.3 ", "10.1.2.3\n", " 2001:db8::1", "not-an-ip", "1.2.3", "256.1.1.1", "10.1.2.3/24", "fe80::1%eth0", None, 167772160])
def test_parse_address_invalid(text):
    assert parse_address(text) is None
