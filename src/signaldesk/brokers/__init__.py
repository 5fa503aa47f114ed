"""Broker connections and active-connection resolution."""

from .models import BrokerConnection, BrokerMode
from .resolver import BrokerResolver

__all__ = ["BrokerConnection", "BrokerMode", "BrokerResolver"]
