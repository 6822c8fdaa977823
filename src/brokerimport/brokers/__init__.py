"""Broker document handlers."""

from brokerimport.brokers.base import BrokerParser
from brokerimport.brokers.comdirect import ComdirectParser
from brokerimport.brokers.fondsdepotbank import FondsdepotbankParser

__all__ = ["BrokerParser", "ComdirectParser", "FondsdepotbankParser"]
