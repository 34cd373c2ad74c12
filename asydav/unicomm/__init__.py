import logging

logger = logging.getLogger('asydav.unicomm')
logger.setLevel(logging.INFO)
