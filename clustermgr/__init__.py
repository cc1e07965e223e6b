"""
clustermgr: keeps a fixed-size pool of worker processes running, replaces
crashed workers and performs rolling restarts on demand.
"""

__version__ = "1.0.0"
