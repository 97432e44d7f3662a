from geoiplookup.handler import Handler
from geoiplookup.subnet import UNKNOWN_COUNTRY, AddressFamily

__all__ = ['Handler', 'AddressFamily', 'UNKNOWN_COUNTRY']
