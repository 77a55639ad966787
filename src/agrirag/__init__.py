"""agrirag — question answering over uploaded agricultural datasets."""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())
