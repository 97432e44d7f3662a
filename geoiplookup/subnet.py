import enum
import ipaddress
from typing import Optional, Tuple, Union


UNKNOWN_COUNTRY = "NA"

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class AddressFamily(enum.Enum):

    V4 = ("ipv4", 32)
    V6 = ("ipv6", 128)

    def __init__(self, tag: str, bit_width: int) -> None:
        self.tag = tag
        self.bit_width = bit_width

    @property
    def partition(self) -> str:
        return self.tag

    @property
    def address_class(self):
        return ipaddress.IPv4Address if self is AddressFamily.V4 else ipaddress.IPv6Address


def family_for_tag(tag: str) -> Optional[AddressFamily]:
    for family in AddressFamily:
        if family.tag == tag:
            return family
    return None


def parse_address(text: str) -> Optional[Tuple[AddressFamily, IPAddress]]:
    """
    Validate a textual IP address and determine its family.

    Returns ``None`` for anything that is not an IPv4 or IPv6 address string.
    IPv4-mapped IPv6 addresses (``::ffff:10.1.2.3``) resolve to the embedded
    IPv4 address. Scoped IPv6 addresses are rejected.
    """
    if not isinstance(text, str):
        return None
    try:
        ip = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv4Address):
        return AddressFamily.V4, ip
    if ip.scope_id is not None:
        return None
    if ip.ipv4_mapped is not None:
        return AddressFamily.V4, ip.ipv4_mapped
    return AddressFamily.V6, ip


def derive_subnet_key(start_address: str, count: int, bit_width: int) -> str:
    """
    Turn an RIR ``start + host count`` pair into ``start/prefix``.

    The prefix is ``bit_width - floor(log2(count))``. Counts that are not a
    power of two truncate, so the key may describe a smaller block than the
    delegation. The start address is used verbatim.
    """
    if count <= 0:
        raise ValueError(f"Host count must be positive, got {count}")
    prefix_length = bit_width - (count.bit_length() - 1)
    if prefix_length < 0:
        raise ValueError(f"Host count {count} does not fit into {bit_width} bits")
    return f"{start_address}/{prefix_length}"


def mask_to_prefix(address: Union[str, IPAddress], prefix_length: int, bit_width: int) -> str:
    if not 0 <= prefix_length <= bit_width:
        raise ValueError(f"Prefix length {prefix_length} outside of [0, {bit_width}]")
    if isinstance(address, str):
        address = ipaddress.ip_address(address)
    if address.max_prefixlen != bit_width:
        raise ValueError(f"Address {address} is not {bit_width} bits wide")
    host_bits = bit_width - prefix_length
    network = (int(address) >> host_bits) << host_bits
    return f"{type(address)(network)}/{prefix_length}"
