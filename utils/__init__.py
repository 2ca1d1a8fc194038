"""Utility modules for Site360."""
from utils.logger import setup_logging
from utils.timeutil import parse_datetime, parse_date, start_of_day
