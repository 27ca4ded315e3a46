"""
nanoKONTROL2 MIDI volume controller.
"""
__version__ = "1.1.0"
