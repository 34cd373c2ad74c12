
__version__ = "0.1.0"
__banner__ = \
"""
# asydav %s 
# Author: Tamas Jos @skelsec (info@skelsecprojects.com)
""" % __version__ 
