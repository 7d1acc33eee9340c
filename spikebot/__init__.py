"""Price-spike alert monitor for Opinion.Trade prediction markets."""

__version__ = "0.1.0"
