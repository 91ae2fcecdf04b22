"""
Command line interface for the consensus oracle.
"""
