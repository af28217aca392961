"""
connctl - command-line client for connmgrd.
"""
