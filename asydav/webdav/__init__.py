import logging

logger = logging.getLogger('asydav.webdav')
