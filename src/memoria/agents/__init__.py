"""
Agents module - conversation agents consuming the synthesized prompt.
"""
