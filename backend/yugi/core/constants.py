"""Application-wide constants for the YUGI booking platform."""

from __future__ import annotations

BRAND_NAME = "YUGI"

# Human-readable booking numbers: YUGI + yymmdd + daily sequence
BOOKING_NUMBER_PREFIX = BRAND_NAME
BOOKING_NUMBER_SEQUENCE_WIDTH = 3

# Text constraints
MAX_REASON_LENGTH = 255
MAX_SPECIAL_REQUIREMENTS_LENGTH = 1000

# UK bank details
SORT_CODE_DIGITS = 6
ACCOUNT_NUMBER_DIGITS = 8

SECONDS_PER_HOUR = 3600
