"""
warcfolder - read and write WACZ and WARC files as folders.
"""
__version__ = "0.1.0"
