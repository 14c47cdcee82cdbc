"""TradeNavi Reconciler - canonical trade records, status workflow and totals for machine resale deals."""

__version__ = "1.0.0"

import logging

# Set default logging to WARNING for library
# Application code can override this
logging.getLogger(__name__).addHandler(logging.NullHandler())
