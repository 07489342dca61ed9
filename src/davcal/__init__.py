"""
davcal - list upcoming CalDAV events from the command line
"""
__version__ = '1.0.0'
