"""
Configuration for sol-flow: remapping table and library registry
"""
