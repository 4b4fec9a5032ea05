"""Обход Redfish API: транспорт, схемы ответов, обходчик."""

from .redfish import RedfishClient, strip_prefix
from .payloads import decode_collection, decode_component, DecodedComponent
from .walker import TopologyWalker

__all__ = [
    "RedfishClient",
    "strip_prefix",
    "decode_collection",
    "decode_component",
    "DecodedComponent",
    "TopologyWalker",
]
