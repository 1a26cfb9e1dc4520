# Adapters for the hosted backend behind the dashboard's proxy

from .backend import BackendClient, encode_predicates

__all__ = ["BackendClient", "encode_predicates"]
